"""Configuration module."""

from replygate.config.loader import get_config_path, load_config, save_config
from replygate.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
