from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, TypeAlias

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModelsMessage:
    models: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class HealthMessage:
    pass


@dataclass(frozen=True, slots=True)
class DeltaMessage:
    assistant_index: int
    version_index: int
    delta: str


@dataclass(frozen=True, slots=True)
class DoneMessage:
    pass


@dataclass(frozen=True, slots=True)
class StoppedMessage:
    pass


InboundMessage: TypeAlias = (
    ModelsMessage | HealthMessage | DeltaMessage | DoneMessage | StoppedMessage
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_message(data: Any) -> InboundMessage | None:
    """Turn a decoded frame into a typed message, or None if it is not one we know."""
    if not isinstance(data, dict):
        return None
    kind = data.get("type")

    if kind == "models":
        models = data.get("models") or []
        if not isinstance(models, list):
            return None
        return ModelsMessage(models=tuple(m for m in models if isinstance(m, str)))

    if kind == "health":
        return HealthMessage()

    if kind == "delta":
        assistant_index = data.get("assistantIndex")
        version_index = data.get("versionIndex")
        delta = data.get("delta")
        if not (_is_int(assistant_index) and _is_int(version_index) and isinstance(delta, str)):
            return None
        return DeltaMessage(
            assistant_index=assistant_index, version_index=version_index, delta=delta
        )

    if kind == "done":
        return DoneMessage()

    if kind == "stopped":
        return StoppedMessage()

    return None


def decode_frame(raw: str | bytes) -> Any | None:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug("Ignoring non-JSON frame")
        return None


def encode_frame(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


def models_request() -> dict:
    return {"type": "models"}


def health_request() -> dict:
    return {"type": "health"}


def stop_request() -> dict:
    return {"type": "stop"}


def chat_request(
    history: list[dict[str, str]], model: str, assistant_index: int, version_index: int
) -> dict:
    return {
        "type": "chat",
        "history": history,
        "model": model,
        "assistantIndex": assistant_index,
        "versionIndex": version_index,
    }
