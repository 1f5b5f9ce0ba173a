import os
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "ws://localhost:3000"
DEFAULT_TITLE = "New chat"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."


class ConfigError(Exception):
    pass


def get_optional_env(name: str, default: str) -> str:
    return os.environ.get(name, default)


def get_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"Environment variable {name} must be a number, got {raw!r}") from e


def default_data_dir() -> str:
    return str(Path.home() / ".murmur")


@dataclass
class ClientConfig:
    ws_url: str = field(
        default_factory=lambda: get_optional_env("MURMUR_WS_URL", DEFAULT_WS_URL)
    )
    data_dir: str = field(
        default_factory=lambda: get_optional_env("MURMUR_DATA_DIR", default_data_dir())
    )
    purge_delay_s: float = field(
        default_factory=lambda: get_float_env("MURMUR_PURGE_DELAY", 5.0)
    )
    reconnect_delay_s: float = field(
        default_factory=lambda: get_float_env("MURMUR_RECONNECT_DELAY", 1.5)
    )
    open_timeout_s: float = 10.0
    default_title: str = DEFAULT_TITLE
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    subtitle_length: int = 40

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls()

    @classmethod
    def from_file(cls, path: str | Path) -> "ClientConfig":
        config_path = Path(path)
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        config = cls.from_env()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            setattr(config, key, value)
        logger.debug(f"Loaded config from {config_path}")
        return config

    def validate(self) -> None:
        if not self.ws_url.startswith(("ws://", "wss://")):
            raise ConfigError("ws_url must start with ws:// or wss://")
        if not self.data_dir:
            raise ConfigError("data_dir must not be empty")
        if self.purge_delay_s < 0:
            raise ConfigError("purge_delay_s must be >= 0")
        if self.reconnect_delay_s <= 0:
            raise ConfigError("reconnect_delay_s must be > 0")
        if self.open_timeout_s <= 0:
            raise ConfigError("open_timeout_s must be > 0")
        if self.subtitle_length < 1:
            raise ConfigError("subtitle_length must be at least 1")
        logger.debug("Configuration validated successfully")
