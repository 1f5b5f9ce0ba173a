import copy
import logging
import os
import re
from pathlib import Path
from typing import Any, Protocol

from common.ids import now_ms
from common.jsonio import atomic_write_json, load_json

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})
        self.writes = 0

    def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes += 1


class JsonFileStore:
    """One JSON document per key under ``data_dir``, written atomically."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        data = load_json(path)
        if data is None and path.exists() and path.read_bytes().strip() != b"null":
            self._quarantine(path)
        return data

    def _quarantine(self, path: Path) -> Path:
        # Moved aside so the next write cannot overwrite what is left of it.
        target = path.with_name(f"{path.name}.corrupt-{now_ms()}")
        os.replace(path, target)
        logger.warning(f"Unreadable storage file {path} moved to {target.name}")
        return target

    def set(self, key: str, value: Any) -> None:
        atomic_write_json(self._path(key), value)
