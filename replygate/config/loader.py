"""Configuration loading and saving."""

import json
from pathlib import Path

from loguru import logger

from replygate.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".replygate" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration from a JSON file.

    Environment variables (REPLYGATE_*) still apply on top of defaults. A missing
    file yields the default configuration; a malformed one is logged and ignored.
    """
    path = path or get_config_path()

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Config(**data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to a JSON file."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
