from common.ids import generate_id, new_chat_id, now_ms
from common.jsonio import load_json, atomic_write_json

__all__ = ["generate_id", "new_chat_id", "now_ms", "load_json", "atomic_write_json"]
