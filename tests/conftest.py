import pytest

from murmur.client import ChatClient
from murmur.config import ClientConfig
from murmur.ledger import Ledger
from murmur.sessions.storage import MemoryStore
from murmur.sessions.store import SessionStore


class _ManualHandle:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Timers that only fire when a test advances the clock."""

    def __init__(self):
        self.now = 0.0
        self._timers: list[_ManualHandle] = []

    def call_later(self, delay: float, callback) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self._timers if not t.cancelled and t.when <= self.now),
            key=lambda t: t.when,
        )
        self._timers = [t for t in self._timers if t not in due and not t.cancelled]
        for handle in due:
            handle.callback()


class FakeTransport:
    def __init__(self, ready: bool = True):
        self.is_ready = ready
        self.sent: list[dict] = []

    def send(self, payload: dict) -> bool:
        if not self.is_ready:
            return False
        self.sent.append(payload)
        return True

    def sent_of(self, kind: str) -> list[dict]:
        return [p for p in self.sent if p.get("type") == kind]

    async def run(self) -> None:
        return None

    async def close(self) -> None:
        self.is_ready = False


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def store(storage) -> SessionStore:
    session_store = SessionStore(storage)
    session_store.load()
    return session_store


@pytest.fixture
def ledger(store) -> Ledger:
    return Ledger(store)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def config(tmp_path) -> ClientConfig:
    return ClientConfig(ws_url="ws://test.invalid", data_dir=str(tmp_path), purge_delay_s=5.0)


@pytest.fixture
def client(config, storage, transport, scheduler, events) -> ChatClient:
    chat_client = ChatClient(
        config,
        storage=storage,
        transport=transport,
        scheduler=scheduler,
        on_event=events.append,
    )
    chat_client.load()
    chat_client.handle_message({"type": "models", "models": ["llama3", "mistral"]})
    return chat_client
