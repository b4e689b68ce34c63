"""Configuration package exports."""

from .loader import ConfigLoader, default_config_path, load_config
from .model import BotConfig

__all__ = [
    "BotConfig",
    "ConfigLoader",
    "default_config_path",
    "load_config",
]
