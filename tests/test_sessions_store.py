import json
from pathlib import Path

from murmur.sessions.schema import AssistantMessage, TextMessage
from murmur.sessions.storage import JsonFileStore, MemoryStore
from murmur.sessions.store import CHATS_KEY, CURRENT_CHAT_KEY, SessionStore


def test_load_without_prior_state_creates_chat():
    storage = MemoryStore()
    store = SessionStore(storage)

    session = store.load()

    assert store.current_id == session.id
    assert session.title == "New chat"
    assert session.system_prompt == "You are a helpful AI assistant."
    assert storage.get(CURRENT_CHAT_KEY) == session.id
    assert session.id in storage.get(CHATS_KEY)


def test_load_resumes_active_chat(tmp_path: Path):
    store = SessionStore(JsonFileStore(tmp_path))
    first = store.load()
    first.messages.append(TextMessage(content="hello"))
    second = store.create_chat(title="Second")
    store.switch_chat(first.id)

    reloaded = SessionStore(JsonFileStore(tmp_path))
    active = reloaded.load()

    assert active.id == first.id
    assert active.messages[0].content == "hello"
    assert set(reloaded.chats) == {first.id, second.id}


def test_load_falls_back_when_current_chat_missing():
    storage = MemoryStore({CHATS_KEY: {}, CURRENT_CHAT_KEY: "chat_gone"})
    store = SessionStore(storage)

    session = store.load()

    assert session.id != "chat_gone"
    assert list(store.chats) == [session.id]


def test_corrupt_chat_entries_are_skipped():
    storage = MemoryStore(
        {
            CHATS_KEY: {
                "good": {"id": "good", "title": "ok", "systemPrompt": "", "messages": []},
                "bad": {"id": "bad", "messages": [{"role": "robot"}]},
            },
            CURRENT_CHAT_KEY: "good",
        }
    )
    store = SessionStore(storage)

    session = store.load()

    assert session.id == "good"
    assert "bad" not in store.chats


def test_json_file_store_writes_one_file_per_key(tmp_path: Path):
    storage = JsonFileStore(tmp_path)
    storage.set("model", "llama3")

    assert json.loads((tmp_path / "model.json").read_text(encoding="utf-8")) == "llama3"
    assert storage.get("model") == "llama3"
    assert storage.get("missing") is None
    assert not list(tmp_path.glob("*.tmp"))


def test_json_file_store_ignores_unreadable_file(tmp_path: Path):
    (tmp_path / "chats.json").write_text("{not json", encoding="utf-8")
    storage = JsonFileStore(tmp_path)

    assert storage.get("chats") is None
    moved = list(tmp_path.glob("chats.json.corrupt-*"))
    assert len(moved) == 1
    assert moved[0].read_text(encoding="utf-8") == "{not json"


def test_json_file_store_ignores_invalid_utf8(tmp_path: Path):
    (tmp_path / "chats.json").write_bytes(b'{"a": "\xff\xfe"}')
    store = SessionStore(JsonFileStore(tmp_path))

    session = store.load()

    assert list(store.chats) == [session.id]
    moved = list(tmp_path.glob("chats.json.corrupt-*"))
    assert moved[0].read_bytes() == b'{"a": "\xff\xfe"}'


def test_truncated_chats_file_is_kept_aside_not_overwritten(tmp_path: Path):
    original = SessionStore(JsonFileStore(tmp_path))
    original.load()
    original.rename_chat(original.current_id, "Keep me")
    text = (tmp_path / "chats.json").read_text(encoding="utf-8")
    (tmp_path / "chats.json").write_text(text[:-3], encoding="utf-8")

    reloaded = SessionStore(JsonFileStore(tmp_path))
    session = reloaded.load()

    assert session.title == "New chat"
    moved = list(tmp_path.glob("chats.json.corrupt-*"))
    assert len(moved) == 1
    assert "Keep me" in moved[0].read_text(encoding="utf-8")
    assert "Keep me" not in (tmp_path / "chats.json").read_text(encoding="utf-8")


def test_stored_null_is_not_treated_as_corrupt(tmp_path: Path):
    storage = JsonFileStore(tmp_path)
    storage.set("currentChat", None)

    assert storage.get("currentChat") is None
    assert (tmp_path / "currentChat.json").exists()
    assert not list(tmp_path.glob("*.corrupt-*"))


def test_load_read_only_does_not_create_or_write(tmp_path: Path):
    store = SessionStore(JsonFileStore(tmp_path))

    assert store.load(read_only=True) is None
    assert store.chats == {}
    assert store.summaries() == []
    assert not list(tmp_path.iterdir())


def test_summaries_skip_deleted_user_messages():
    store = SessionStore(MemoryStore(), subtitle_length=5)
    session = store.load()
    session.messages.append(TextMessage(content="first question", deleted=True))
    session.messages.append(AssistantMessage())
    session.messages.append(TextMessage(content="second question"))
    empty = store.create_chat()

    summaries = {s.id: s for s in store.summaries()}

    assert summaries[session.id].subtitle == "secon"
    assert summaries[empty.id].subtitle == "No messages"
    assert summaries[empty.id].active
    assert not summaries[session.id].active


def test_rename_and_system_prompt():
    storage = MemoryStore()
    store = SessionStore(storage)
    session = store.load()

    assert store.rename_chat(session.id, "  Trip plans ")
    assert not store.rename_chat(session.id, "   ")
    assert not store.rename_chat("nope", "x")
    assert store.set_system_prompt(session.id, "")

    saved = storage.get(CHATS_KEY)[session.id]
    assert saved["title"] == "Trip plans"
    assert saved["systemPrompt"] == ""


def test_switch_to_unknown_chat_is_rejected():
    store = SessionStore(MemoryStore())
    session = store.load()

    assert store.switch_chat("chat_unknown") is None
    assert store.current_id == session.id
