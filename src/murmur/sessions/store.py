import logging
from dataclasses import dataclass

from pydantic import ValidationError

from murmur.config import DEFAULT_SYSTEM_PROMPT, DEFAULT_TITLE
from murmur.sessions.schema import ChatSession, TextMessage
from murmur.sessions.storage import KeyValueStore

logger = logging.getLogger(__name__)

CHATS_KEY = "chats"
CURRENT_CHAT_KEY = "currentChat"


class SessionError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class ChatSummary:
    id: str
    title: str
    subtitle: str
    active: bool


class SessionStore:
    """Owns every chat session and which one is active.

    Every mutation made through the store, the ledger or the tombstone
    manager ends with :meth:`save`, which rewrites both persisted entries in
    full.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        default_title: str = DEFAULT_TITLE,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        subtitle_length: int = 40,
    ):
        self._storage = storage
        self.default_title = default_title
        self.default_system_prompt = default_system_prompt
        self.subtitle_length = subtitle_length
        self.chats: dict[str, ChatSession] = {}
        self.current_id: str | None = None

    @property
    def active(self) -> ChatSession:
        if self.current_id is None or self.current_id not in self.chats:
            raise SessionError("No active chat; call load() first")
        return self.chats[self.current_id]

    def get(self, chat_id: str) -> ChatSession | None:
        return self.chats.get(chat_id)

    def load(self, read_only: bool = False) -> ChatSession | None:
        """Load every stored chat and resume the active one.

        Without a resumable chat a fresh one is created and saved, unless
        ``read_only`` is set, in which case nothing is written and None is
        returned.
        """
        raw = self._storage.get(CHATS_KEY)
        self.chats = {}
        if isinstance(raw, dict):
            for key, data in raw.items():
                try:
                    session = ChatSession.model_validate(data)
                except ValidationError as e:
                    logger.warning(f"Skipping corrupt chat {key}: {e.error_count()} errors")
                    continue
                self.chats[session.id] = session
        elif raw is not None:
            logger.warning("Ignoring stored chats: expected a mapping")

        current = self._storage.get(CURRENT_CHAT_KEY)
        if isinstance(current, str) and current in self.chats:
            self.current_id = current
            if not read_only:
                self.save()
            logger.info(f"Loaded {len(self.chats)} chats, active {current}")
            return self.active
        if read_only:
            return None
        return self.create_chat()

    def save(self) -> None:
        snapshot = {chat_id: chat.snapshot() for chat_id, chat in self.chats.items()}
        self._storage.set(CHATS_KEY, snapshot)
        self._storage.set(CURRENT_CHAT_KEY, self.current_id)

    def create_chat(
        self, title: str | None = None, system_prompt: str | None = None
    ) -> ChatSession:
        session = ChatSession(
            title=title or self.default_title,
            system_prompt=(
                self.default_system_prompt if system_prompt is None else system_prompt
            ),
        )
        while session.id in self.chats:
            session = session.model_copy(update={"id": ChatSession().id})
        self.chats[session.id] = session
        self.current_id = session.id
        self.save()
        logger.info(f"Created chat {session.id}")
        return session

    def switch_chat(self, chat_id: str) -> ChatSession | None:
        if chat_id not in self.chats:
            return None
        self.current_id = chat_id
        self.save()
        return self.chats[chat_id]

    def rename_chat(self, chat_id: str, title: str) -> bool:
        session = self.chats.get(chat_id)
        title = title.strip()
        if session is None or not title:
            return False
        session.title = title
        self.save()
        return True

    def set_system_prompt(self, chat_id: str, prompt: str) -> bool:
        session = self.chats.get(chat_id)
        if session is None:
            return False
        session.system_prompt = prompt.strip()
        self.save()
        return True

    def subtitle(self, session: ChatSession) -> str:
        for message in session.messages:
            if isinstance(message, TextMessage) and message.role == "user" and not message.deleted:
                return message.content[: self.subtitle_length]
        return "No messages"

    def summaries(self) -> list[ChatSummary]:
        return [
            ChatSummary(
                id=chat.id,
                title=chat.title,
                subtitle=self.subtitle(chat),
                active=chat.id == self.current_id,
            )
            for chat in self.chats.values()
        ]
