from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeAlias


@dataclass(frozen=True, slots=True)
class StreamStartedEvent:
    session_id: str
    message_id: str
    version_id: str
    model: str


@dataclass(frozen=True, slots=True)
class StreamDeltaEvent:
    session_id: str
    message_id: str
    version_id: str
    text: str


@dataclass(frozen=True, slots=True)
class StreamEndedEvent:
    session_id: str
    message_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class ModelsUpdatedEvent:
    models: tuple[str, ...]
    selected: str | None


@dataclass(frozen=True, slots=True)
class HealthAckEvent:
    received_at: float


@dataclass(frozen=True, slots=True)
class MessagePurgedEvent:
    session_id: str
    message_id: str
    slot_index: int


@dataclass(frozen=True, slots=True)
class ConnectionEvent:
    connected: bool
    url: str


Event: TypeAlias = (
    StreamStartedEvent
    | StreamDeltaEvent
    | StreamEndedEvent
    | ModelsUpdatedEvent
    | HealthAckEvent
    | MessagePurgedEvent
    | ConnectionEvent
)
EventCallback: TypeAlias = Callable[[Event], None] | None


class EventEmitter:
    def __init__(self, callback: EventCallback = None):
        self._callback = callback

    def set_callback(self, callback: EventCallback) -> None:
        self._callback = callback

    def emit(self, event: Event) -> None:
        if self._callback is not None:
            self._callback(event)
