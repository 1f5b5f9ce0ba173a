from murmur.sessions.schema import (
    AssistantMessage,
    ChatSession,
    Message,
    TextMessage,
    Version,
)
from murmur.sessions.storage import JsonFileStore, KeyValueStore, MemoryStore
from murmur.sessions.store import ChatSummary, SessionError, SessionStore

__all__ = [
    "AssistantMessage",
    "ChatSession",
    "ChatSummary",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "Message",
    "SessionError",
    "SessionStore",
    "TextMessage",
    "Version",
]
