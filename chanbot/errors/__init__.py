"""Error hierarchy and error handling helpers."""

from .handling import handle_api_error, log_error, with_retries  # noqa: F401
from .internal import (  # noqa: F401
    ConfigError,
    ConnectionClosedError,
    InternalError,
    NetworkError,
    ParsingError,
)

__all__ = [
    "ConfigError",
    "ConnectionClosedError",
    "InternalError",
    "NetworkError",
    "ParsingError",
    "handle_api_error",
    "log_error",
    "with_retries",
]
