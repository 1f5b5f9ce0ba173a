import logging
from typing import Any

from common.events import ConnectionEvent, EventCallback, EventEmitter
from murmur.config import ClientConfig
from murmur.engine import DispatchOutcome, StreamingEngine
from murmur.ledger import Ledger, message_at
from murmur.models import ModelSelector
from murmur.sessions.schema import ChatSession
from murmur.sessions.storage import JsonFileStore, KeyValueStore
from murmur.sessions.store import ChatSummary, SessionStore
from murmur.tombstones import AsyncioScheduler, Scheduler, TombstoneManager
from murmur.transport import Transport, WebSocketTransport

logger = logging.getLogger(__name__)


class ChatClient:
    """UI-facing actions on the active chat.

    Slot indices passed in here refer to the active chat as it is right now;
    they are resolved to message ids before anything asynchronous happens.
    """

    def __init__(
        self,
        config: ClientConfig,
        storage: KeyValueStore | None = None,
        transport: Transport | None = None,
        scheduler: Scheduler | None = None,
        on_event: EventCallback = None,
    ):
        self.config = config
        self.emitter = EventEmitter(on_event)
        self.storage = storage if storage is not None else JsonFileStore(config.data_dir)
        self.store = SessionStore(
            self.storage,
            default_title=config.default_title,
            default_system_prompt=config.default_system_prompt,
            subtitle_length=config.subtitle_length,
        )
        self.ledger = Ledger(self.store)
        self.tombstones = TombstoneManager(
            self.store,
            scheduler or AsyncioScheduler(),
            purge_delay_s=config.purge_delay_s,
            emitter=self.emitter,
        )
        self.transport = transport or WebSocketTransport(
            config.ws_url,
            reconnect_delay_s=config.reconnect_delay_s,
            open_timeout_s=config.open_timeout_s,
            on_message=self.handle_message,
            on_open=self.on_connected,
            on_close=self.on_disconnected,
        )
        self.models = ModelSelector(self.storage)
        self.engine = StreamingEngine(
            self.store, self.ledger, self.transport, self.models, emitter=self.emitter
        )

    @property
    def active(self) -> ChatSession:
        return self.store.active

    def load(self) -> ChatSession:
        return self.store.load()

    async def run(self) -> None:
        self.tombstones.restore(self.store.chats.values())
        await self.transport.run()

    async def close(self) -> None:
        self.tombstones.cancel_all()
        await self.transport.close()

    # -- connection ---------------------------------------------------------

    def handle_message(self, data: Any) -> None:
        self.engine.handle_message(data)

    def on_connected(self) -> None:
        self.emitter.emit(ConnectionEvent(connected=True, url=self.config.ws_url))
        self.engine.on_connected()

    def on_disconnected(self) -> None:
        self.engine.on_disconnected()
        self.emitter.emit(ConnectionEvent(connected=False, url=self.config.ws_url))

    # -- chats --------------------------------------------------------------

    def new_chat(self, title: str | None = None) -> ChatSession:
        return self.store.create_chat(title=title)

    def switch_chat(self, chat_id: str) -> ChatSession | None:
        return self.store.switch_chat(chat_id)

    def rename_chat(self, title: str) -> bool:
        return self.store.rename_chat(self.active.id, title)

    def set_system_prompt(self, prompt: str) -> bool:
        return self.store.set_system_prompt(self.active.id, prompt)

    def list_chats(self) -> list[ChatSummary]:
        return self.store.summaries()

    # -- generation ---------------------------------------------------------

    def send(self, text: str) -> DispatchOutcome:
        return self.engine.send_message(self.active, text)

    def regenerate(self, slot_index: int) -> DispatchOutcome:
        return self.engine.regenerate(self.active, slot_index)

    def continue_message(self, slot_index: int) -> DispatchOutcome:
        return self.engine.continue_generation(self.active, slot_index)

    def stop(self) -> bool:
        return self.engine.request_stop()

    def request_health(self) -> bool:
        return self.engine.request_health()

    def select_model(self, model: str) -> bool:
        return self.models.select(model)

    # -- messages -----------------------------------------------------------

    def select_version(self, slot_index: int, version_index: int) -> bool:
        return self.ledger.select_version(self.active, slot_index, version_index)

    def delete_message(self, slot_index: int) -> bool:
        return self.tombstones.soft_delete(self.active, slot_index)

    def undo_delete(self, slot_index: int) -> bool:
        return self.tombstones.undo(self.active, slot_index)

    def begin_edit(self, slot_index: int) -> bool:
        if self._streaming_into(slot_index):
            return False
        return self.ledger.begin_edit(self.active, slot_index)

    def cancel_edit(self, slot_index: int) -> bool:
        return self.ledger.cancel_edit(self.active, slot_index)

    def save_edit(self, slot_index: int, text: str) -> bool:
        if self._streaming_into(slot_index):
            return False
        return self.ledger.edit_user_content(self.active, slot_index, text)

    def _streaming_into(self, slot_index: int) -> bool:
        message = message_at(self.active, slot_index)
        return message is not None and self.engine.is_target(self.active, message.id)
