from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from hnbot.constants import (
    ALLOWED_CHANNELS,
    REFRESH_INTERVAL,
    SCORE_THRESHOLD,
    STORY_FETCH_TIMEOUT,
    WORKER_COUNT,
)
from hnbot.errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "hn_slackbot"
CONFIG_FILE = CONFIG_DIR / "config.json"


def load_config() -> dict:
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return json.load(f)
    except Exception:
        return {}


def save_config(key: str, value: str):
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    config = load_config()
    config[key] = value
    with open(CONFIG_FILE, "w") as f:
        json.dump(config, f, indent=2)


def get_token() -> Optional[str]:
    return load_config().get("token")


@dataclass(frozen=True)
class Settings:
    """Startup configuration for the bot."""

    token: str = ""
    score_threshold: int = SCORE_THRESHOLD
    worker_count: int = WORKER_COUNT
    refresh_interval: float = REFRESH_INTERVAL
    story_timeout: float = STORY_FETCH_TIMEOUT
    allowed_channels: tuple[str, ...] = field(default=ALLOWED_CHANNELS)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            raise ConfigError(
                "worker_count must be at least 1", {"worker_count": self.worker_count}
            )
        if self.refresh_interval <= 0:
            raise ConfigError(
                "refresh_interval must be positive",
                {"refresh_interval": self.refresh_interval},
            )
        if self.story_timeout <= 0:
            raise ConfigError(
                "story_timeout must be positive", {"story_timeout": self.story_timeout}
            )


def load_settings(**overrides: Any) -> Settings:
    """
    Build Settings from defaults, the saved config file and explicit overrides.

    Later sources win. ``None`` overrides are ignored so argparse results can be
    passed straight through.
    """
    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {
        k: v for k, v in load_config().items() if k in known and v is not None
    }
    values.update({k: v for k, v in overrides.items() if k in known and v is not None})
    if "allowed_channels" in values:
        channels = values["allowed_channels"]
        if isinstance(channels, str):
            channels = [c for c in channels.split(",") if c]
        values["allowed_channels"] = tuple(c.strip().lstrip("#") for c in channels)
    try:
        return Settings(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
