"""Configuration loading utilities."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from pydantic import ValidationError

from ..errors.internal import ConfigError
from .model import BotConfig

DEFAULT_CONFIG_FILE = "config.json"


def default_config_path() -> str:
    return os.environ.get("CHANBOT_CONF_FILE", DEFAULT_CONFIG_FILE)


class ConfigLoader:
    """Handles loading the bot configuration from a JSON file."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        """Initialize ConfigLoader.

        Args:
            path: Path to the configuration file. Defaults to the
                ``CHANBOT_CONF_FILE`` environment variable, then ``config.json``.
        """
        if path is not None and not isinstance(path, str | os.PathLike):
            raise TypeError("path must be str or os.PathLike")
        self.path = str(path) if path is not None else default_config_path()

    def load_raw(self) -> dict[str, Any]:
        """Read the JSON object stored in the configuration file.

        Raises:
            ConfigError: If the file is missing, unreadable or not a JSON object.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(
                f"Configuration file not found: {self.path}", data={"path": self.path}
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Configuration file is not valid JSON: {self.path} ({e.msg}, line {e.lineno})",
                data={"path": self.path},
            ) from e
        except OSError as e:
            raise ConfigError(
                f"Configuration file unreadable: {self.path} ({e})", data={"path": self.path}
            ) from e
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration must be a JSON object: {self.path}", data={"path": self.path}
            )
        return data

    def load(self) -> BotConfig:
        """Load and validate the bot configuration.

        Returns:
            The validated, immutable BotConfig.

        Raises:
            ConfigError: If the file cannot be read or fails validation.
        """
        raw = self.load_raw()
        try:
            config = BotConfig.from_dict(raw)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigError(
                f"Invalid configuration in {self.path}: {problems}",
                data={"path": self.path, "errors": e.error_count()},
            ) from e
        logging.debug(
            f"✅ Configuration loaded server={config.address} nickname={config.nickname} "
            f"channels={len(config.channels)}"
        )
        return config


def load_config(path: str | os.PathLike[str] | None = None) -> BotConfig:
    """Load the bot configuration from ``path`` (see ConfigLoader)."""
    return ConfigLoader(path).load()
