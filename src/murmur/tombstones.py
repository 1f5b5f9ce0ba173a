import asyncio
import logging
from typing import Callable, Iterable, Protocol

from common.events import EventEmitter, MessagePurgedEvent
from murmur.ledger import index_of, message_at
from murmur.sessions.schema import ChatSession
from murmur.sessions.store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_PURGE_DELAY_S = 5.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Timers on the running asyncio loop, so purges run on the control thread."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class TombstoneManager:
    """Soft delete with a deferred hard purge.

    A deleted message stays in place, hidden from history and summaries,
    until its purge timer fires. The timer is keyed by message id and looks
    the message up again in its own chat when it fires, so index shifts and
    chat switches in the meantime do not change which message is removed.
    """

    def __init__(
        self,
        store: SessionStore,
        scheduler: Scheduler,
        purge_delay_s: float = DEFAULT_PURGE_DELAY_S,
        emitter: EventEmitter | None = None,
    ):
        self._store = store
        self._scheduler = scheduler
        self.purge_delay_s = purge_delay_s
        self._emitter = emitter or EventEmitter()
        self._pending: dict[str, TimerHandle] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def is_pending(self, message_id: str) -> bool:
        return message_id in self._pending

    def soft_delete(self, session: ChatSession, slot_index: int) -> bool:
        message = message_at(session, slot_index)
        if message is None or message.deleted:
            return False
        message.deleted = True
        self._store.save()
        self._schedule(session.id, message.id)
        return True

    def undo(self, session: ChatSession, slot_index: int) -> bool:
        message = message_at(session, slot_index)
        if message is None or not message.deleted:
            return False
        message.deleted = False
        handle = self._pending.pop(message.id, None)
        if handle is not None:
            handle.cancel()
        self._store.save()
        return True

    def restore(self, sessions: Iterable[ChatSession]) -> int:
        armed = 0
        for session in sessions:
            for message in session.messages:
                if message.deleted and message.id not in self._pending:
                    self._schedule(session.id, message.id)
                    armed += 1
        if armed:
            logger.info(f"Re-armed {armed} pending purges")
        return armed

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def _schedule(self, session_id: str, message_id: str) -> None:
        self._pending[message_id] = self._scheduler.call_later(
            self.purge_delay_s, lambda: self._purge(session_id, message_id)
        )

    def _purge(self, session_id: str, message_id: str) -> None:
        self._pending.pop(message_id, None)
        session = self._store.get(session_id)
        if session is None:
            return
        index = index_of(session, message_id)
        if index is None or not session.messages[index].deleted:
            return
        del session.messages[index]
        self._store.save()
        logger.debug(f"Purged message {message_id} at slot {index} in {session_id}")
        self._emitter.emit(
            MessagePurgedEvent(session_id=session_id, message_id=message_id, slot_index=index)
        )
