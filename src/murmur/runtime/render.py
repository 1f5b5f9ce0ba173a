from typing import TextIO
import sys

from common.events import (
    ConnectionEvent,
    Event,
    HealthAckEvent,
    MessagePurgedEvent,
    ModelsUpdatedEvent,
    StreamDeltaEvent,
    StreamEndedEvent,
    StreamStartedEvent,
)
from murmur.engine import DispatchOutcome
from murmur.sessions.schema import AssistantMessage, ChatSession

OUTCOME_TEXT = {
    DispatchOutcome.ALREADY_STREAMING: "⏳ A response is already streaming (/stop to cancel)",
    DispatchOutcome.NOT_CONNECTED: "❌ Not connected to the server",
    DispatchOutcome.NO_MODEL_SELECTED: "❌ No model selected",
    DispatchOutcome.INVALID_TARGET: "❌ That message cannot be generated into",
    DispatchOutcome.EMPTY_INPUT: "Nothing to send",
}


def describe_outcome(outcome: DispatchOutcome) -> str | None:
    return OUTCOME_TEXT.get(outcome)


def render_chat(session: ChatSession) -> str:
    lines = [f"── {session.title} ──"]
    if not session.messages:
        lines.append("  (no messages)")
    for index, message in enumerate(session.messages):
        if message.deleted:
            lines.append(f"[{index}] Message deleted (/undo {index})")
            continue
        if isinstance(message, AssistantMessage):
            lines.append(f"[{index}] assistant: {message.current.content}")
            if len(message.versions) > 1:
                pills = " ".join(
                    f"[v{vi + 1}]" if vi == message.current_version else f"v{vi + 1}"
                    for vi in range(len(message.versions))
                )
                lines.append(f"      {pills}")
        else:
            marker = " (editing)" if message.editing else ""
            lines.append(f"[{index}] {message.role}{marker}: {message.content}")
    return "\n".join(lines)


class TerminalRenderer:
    """Prints client events as they arrive; deltas are written inline."""

    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout

    def _line(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def __call__(self, event: Event) -> None:
        if isinstance(event, StreamStartedEvent):
            self.out.write(f"\n🤖 ({event.model}) ")
            self.out.flush()
        elif isinstance(event, StreamDeltaEvent):
            self.out.write(event.text)
            self.out.flush()
        elif isinstance(event, StreamEndedEvent):
            if event.reason == "done":
                self._line("")
            else:
                self._line(f"\n⚠️  Response {event.reason}")
        elif isinstance(event, ModelsUpdatedEvent):
            if event.selected:
                self._line(f"📦 Model: {event.selected} ({len(event.models)} available)")
            else:
                self._line("📦 No models available")
        elif isinstance(event, HealthAckEvent):
            self._line("💚 Server healthy")
        elif isinstance(event, MessagePurgedEvent):
            self._line(f"🗑️  Message {event.slot_index} removed")
        elif isinstance(event, ConnectionEvent):
            state = "Connected to" if event.connected else "Disconnected from"
            self._line(f"🔌 {state} {event.url}")
