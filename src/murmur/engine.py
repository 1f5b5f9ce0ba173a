import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from common.events import (
    EventEmitter,
    HealthAckEvent,
    ModelsUpdatedEvent,
    StreamDeltaEvent,
    StreamEndedEvent,
    StreamStartedEvent,
)
from murmur.ledger import Ledger, index_of, message_at, version_index_of
from murmur.models import ModelSelector
from murmur.projector import project
from murmur.protocol import (
    DeltaMessage,
    DoneMessage,
    HealthMessage,
    ModelsMessage,
    StoppedMessage,
    chat_request,
    health_request,
    models_request,
    parse_message,
    stop_request,
)
from murmur.sessions.schema import AssistantMessage, ChatSession
from murmur.sessions.store import SessionStore
from murmur.transport import Transport

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


class DispatchOutcome(str, Enum):
    DISPATCHED = "dispatched"
    ALREADY_STREAMING = "already_streaming"
    NOT_CONNECTED = "not_connected"
    NO_MODEL_SELECTED = "no_model_selected"
    INVALID_TARGET = "invalid_target"
    EMPTY_INPUT = "empty_input"


@dataclass(frozen=True, slots=True)
class StreamTarget:
    session_id: str
    message_id: str
    version_id: str
    assistant_index: int
    version_index: int


class StreamingEngine:
    """Single global stream lifecycle: Idle -> Streaming -> Idle.

    The target of a stream is recorded by chat, message and version id at
    dispatch time. Inbound deltas must carry the positional pair that was
    sent with the request and are then applied to wherever the target
    message currently sits in its own chat.
    """

    def __init__(
        self,
        store: SessionStore,
        ledger: Ledger,
        transport: Transport,
        models: ModelSelector,
        emitter: EventEmitter | None = None,
    ):
        self._store = store
        self._ledger = ledger
        self._transport = transport
        self.models = models
        self._emitter = emitter or EventEmitter()
        self._state = StreamState.IDLE
        self._target: StreamTarget | None = None
        self.stop_requested = False
        self.last_health_at: float | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_streaming(self) -> bool:
        return self._state is StreamState.STREAMING

    @property
    def target(self) -> StreamTarget | None:
        return self._target

    def is_target(self, session: ChatSession, message_id: str) -> bool:
        return (
            self._target is not None
            and self._target.session_id == session.id
            and self._target.message_id == message_id
        )

    def check_ready(self) -> DispatchOutcome | None:
        if self.is_streaming:
            return DispatchOutcome.ALREADY_STREAMING
        if not self._transport.is_ready:
            return DispatchOutcome.NOT_CONNECTED
        if not self.models.selected:
            return DispatchOutcome.NO_MODEL_SELECTED
        return None

    # -- request side -------------------------------------------------------

    def dispatch(
        self, session: ChatSession, slot_index: int, version_index: int
    ) -> DispatchOutcome:
        blocked = self.check_ready()
        if blocked is not None:
            return blocked
        message = message_at(session, slot_index)
        if not isinstance(message, AssistantMessage) or not (
            0 <= version_index < len(message.versions)
        ):
            return DispatchOutcome.INVALID_TARGET

        model = self.models.selected
        payload = chat_request(project(session), model, slot_index, version_index)
        if not self._transport.send(payload):
            return DispatchOutcome.NOT_CONNECTED

        self._target = StreamTarget(
            session_id=session.id,
            message_id=message.id,
            version_id=message.versions[version_index].id,
            assistant_index=slot_index,
            version_index=version_index,
        )
        self._state = StreamState.STREAMING
        self.stop_requested = False
        logger.info(f"Streaming {model} into slot {slot_index}/{version_index} of {session.id}")
        self._emitter.emit(
            StreamStartedEvent(
                session_id=session.id,
                message_id=self._target.message_id,
                version_id=self._target.version_id,
                model=model,
            )
        )
        return DispatchOutcome.DISPATCHED

    def send_message(self, session: ChatSession, text: str) -> DispatchOutcome:
        blocked = self.check_ready()
        if blocked is not None:
            return blocked
        if self._ledger.append_user_message(session, text) is None:
            return DispatchOutcome.EMPTY_INPUT
        slot_index = self._ledger.append_assistant_placeholder(session)
        return self.dispatch(session, slot_index, 0)

    def regenerate(self, session: ChatSession, slot_index: int) -> DispatchOutcome:
        blocked = self.check_ready()
        if blocked is not None:
            return blocked
        version_index = self._ledger.add_version(session, slot_index)
        if version_index is None:
            return DispatchOutcome.INVALID_TARGET
        return self.dispatch(session, slot_index, version_index)

    def continue_generation(self, session: ChatSession, slot_index: int) -> DispatchOutcome:
        blocked = self.check_ready()
        if blocked is not None:
            return blocked
        message = message_at(session, slot_index)
        if not isinstance(message, AssistantMessage):
            return DispatchOutcome.INVALID_TARGET
        return self.dispatch(session, slot_index, message.current_version)

    def request_stop(self) -> bool:
        if not self.is_streaming or not self._transport.is_ready:
            return False
        if not self._transport.send(stop_request()):
            return False
        self.stop_requested = True
        return True

    def request_health(self) -> bool:
        if not self._transport.is_ready:
            return False
        return self._transport.send(health_request())

    # -- connection lifecycle -----------------------------------------------

    def on_connected(self) -> None:
        self._transport.send(models_request())

    def on_disconnected(self) -> None:
        if self.is_streaming:
            logger.warning("Connection lost mid-stream; keeping partial content")
            self._finish("abandoned")

    # -- inbound side -------------------------------------------------------

    def handle_message(self, data: Any) -> None:
        message = parse_message(data)
        if message is None:
            logger.debug(f"Ignoring unexpected message: {str(data)[:80]}")
            return

        if isinstance(message, ModelsMessage):
            selected = self.models.update(message.models)
            self._emitter.emit(ModelsUpdatedEvent(models=message.models, selected=selected))
        elif isinstance(message, HealthMessage):
            self.last_health_at = time.time()
            self._emitter.emit(HealthAckEvent(received_at=self.last_health_at))
        elif isinstance(message, DeltaMessage):
            self._apply_delta(message)
        elif isinstance(message, DoneMessage):
            self._finish("done")
        elif isinstance(message, StoppedMessage):
            self._finish("stopped")

    def _apply_delta(self, message: DeltaMessage) -> None:
        target = self._target
        if not self.is_streaming or target is None:
            logger.debug("Dropping delta received while idle")
            return
        if (message.assistant_index, message.version_index) != (
            target.assistant_index,
            target.version_index,
        ):
            logger.debug(
                f"Dropping stale delta for {message.assistant_index}/{message.version_index}"
            )
            return

        session = self._store.get(target.session_id)
        slot_index = index_of(session, target.message_id) if session else None
        if slot_index is None:
            logger.debug(f"Dropping delta for purged message {target.message_id}")
            return
        assistant = session.messages[slot_index]
        version_index = version_index_of(assistant, target.version_id)
        if version_index is None:
            return

        if self._ledger.append_delta(session, slot_index, version_index, message.delta):
            self._emitter.emit(
                StreamDeltaEvent(
                    session_id=target.session_id,
                    message_id=target.message_id,
                    version_id=target.version_id,
                    text=message.delta,
                )
            )

    def _finish(self, reason: str) -> None:
        target = self._target
        if not self.is_streaming or target is None:
            logger.debug(f"Ignoring '{reason}' while idle")
            return
        self._state = StreamState.IDLE
        self._target = None
        self.stop_requested = False
        self._store.save()
        logger.info(f"Stream ended ({reason})")
        self._emitter.emit(
            StreamEndedEvent(
                session_id=target.session_id, message_id=target.message_id, reason=reason
            )
        )
