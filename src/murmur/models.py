import logging

from murmur.sessions.storage import KeyValueStore

logger = logging.getLogger(__name__)

MODEL_KEY = "model"


class ModelSelector:
    """Models offered by the backend plus the persisted user preference."""

    def __init__(self, storage: KeyValueStore):
        self._storage = storage
        self.available: list[str] = []
        self.selected: str | None = None

    @property
    def preference(self) -> str | None:
        saved = self._storage.get(MODEL_KEY)
        return saved if isinstance(saved, str) else None

    def update(self, models: list[str] | tuple[str, ...]) -> str | None:
        self.available = list(models)
        if not self.available:
            self.selected = None
            logger.warning("Backend offered no models")
            return None

        saved = self.preference
        self.selected = saved if saved in self.available else self.available[0]
        self._storage.set(MODEL_KEY, self.selected)
        logger.info(f"Model selected: {self.selected} ({len(self.available)} available)")
        return self.selected

    def select(self, model: str) -> bool:
        if model not in self.available:
            return False
        self.selected = model
        self._storage.set(MODEL_KEY, model)
        return True
