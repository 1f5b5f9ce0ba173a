import logging

from murmur.sessions.schema import AssistantMessage, ChatSession, Message, TextMessage, Version
from murmur.sessions.store import SessionStore

logger = logging.getLogger(__name__)


def message_at(session: ChatSession, slot_index: int) -> Message | None:
    if not 0 <= slot_index < len(session.messages):
        return None
    return session.messages[slot_index]


def index_of(session: ChatSession, message_id: str) -> int | None:
    for index, message in enumerate(session.messages):
        if message.id == message_id:
            return index
    return None


def version_index_of(message: AssistantMessage, version_id: str) -> int | None:
    for index, version in enumerate(message.versions):
        if version.id == version_id:
            return index
    return None


class Ledger:
    """Message and version mutations for a chat session.

    Operations address messages by slot index (position in the session's
    message list). Invalid addresses are ignored and reported through the
    return value; nothing is raised.
    """

    def __init__(self, store: SessionStore):
        self._store = store

    def _assistant_at(self, session: ChatSession, slot_index: int) -> AssistantMessage | None:
        message = message_at(session, slot_index)
        if isinstance(message, AssistantMessage):
            return message
        return None

    def _text_at(self, session: ChatSession, slot_index: int) -> TextMessage | None:
        message = message_at(session, slot_index)
        if isinstance(message, TextMessage):
            return message
        return None

    def append_user_message(self, session: ChatSession, text: str) -> int | None:
        text = text.strip()
        if not text:
            return None
        session.messages.append(TextMessage(role="user", content=text))
        self._store.save()
        return len(session.messages) - 1

    def append_assistant_placeholder(self, session: ChatSession) -> int:
        session.messages.append(AssistantMessage())
        self._store.save()
        return len(session.messages) - 1

    def add_version(self, session: ChatSession, slot_index: int) -> int | None:
        message = self._assistant_at(session, slot_index)
        if message is None:
            return None
        message.versions.append(Version())
        message.current_version = len(message.versions) - 1
        self._store.save()
        return message.current_version

    def select_version(self, session: ChatSession, slot_index: int, version_index: int) -> bool:
        message = self._assistant_at(session, slot_index)
        if message is None or not 0 <= version_index < len(message.versions):
            return False
        message.current_version = version_index
        self._store.save()
        return True

    def append_delta(
        self, session: ChatSession, slot_index: int, version_index: int, text: str
    ) -> bool:
        message = self._assistant_at(session, slot_index)
        if message is None or not 0 <= version_index < len(message.versions):
            logger.debug(f"Dropping delta for missing slot {slot_index}/{version_index}")
            return False
        message.versions[version_index].content += text
        self._store.save()
        return True

    def begin_edit(self, session: ChatSession, slot_index: int) -> bool:
        message = self._text_at(session, slot_index)
        if message is None or message.deleted:
            return False
        message.editing = True
        return True

    def cancel_edit(self, session: ChatSession, slot_index: int) -> bool:
        message = self._text_at(session, slot_index)
        if message is None:
            return False
        message.editing = False
        return True

    def edit_user_content(self, session: ChatSession, slot_index: int, new_text: str) -> bool:
        message = self._text_at(session, slot_index)
        new_text = new_text.strip()
        if message is None or not new_text:
            return False
        message.content = new_text
        message.editing = False
        self._store.save()
        return True
