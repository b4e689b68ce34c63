"""Error hierarchy shared by the connection, the commands and the entry point.

Raw ``OSError`` / ``aiohttp`` / JSON / pydantic failures are wrapped into one
of these at the boundary where they happen, so callers only ever branch on
the categories below.

Classes:
  InternalError          – Base; carries a ``data`` dict of structured context.
  NetworkError           – Socket dial/read/write or HTTP transport failure.
  ConnectionClosedError  – The server ended the session (EOF) uninvited.
  ParsingError           – A remote response could not be understood.
  ConfigError            – Missing, unreadable or invalid configuration.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for chanbot errors.

    Args:
        message: Human readable description.
        data: Optional structured context (copied, the caller keeps its own).
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        self.data = dict(data or {})


class NetworkError(InternalError):
    """The transport failed; retrying or reconnecting may help."""


class ConnectionClosedError(NetworkError):
    """The server closed the connection while the bot was still running."""


class ParsingError(InternalError):
    """A remote service answered with something unusable."""


class ConfigError(InternalError):
    """The bot configuration cannot be loaded."""


__all__ = [
    "ConfigError",
    "ConnectionClosedError",
    "InternalError",
    "NetworkError",
    "ParsingError",
]
