import time
import uuid


def generate_id() -> str:
    return str(uuid.uuid4())[:8]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_chat_id() -> str:
    return f"chat_{now_ms()}_{generate_id()[:4]}"
