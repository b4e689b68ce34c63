"""
Tunables for chanbot.

Numeric values can be overridden through an environment variable of the same
name; an unparsable override is reported on stderr and the default is kept.
"""

import os
import sys
from typing import TypeVar

T = TypeVar("T", int, float)


def _env_number(name: str, default: T) -> T:
    raw = os.getenv(name)
    if raw is None:
        return default
    cast = type(default)
    try:
        return cast(raw)
    except ValueError:
        print(
            f"Warning: {name}={raw!r} is not a valid {cast.__name__}, using {default}",
            file=sys.stderr,
        )
        return default


# Server connection
DEFAULT_IRC_PORT = 6667
CONNECT_TIMEOUT = _env_number("CONNECT_TIMEOUT", 15.0)  # TCP dial, seconds
READ_LIMIT_BYTES = _env_number("READ_LIMIT_BYTES", 8192)  # servers cap lines at 512 bytes
WRITE_QUEUE_SIZE = _env_number("WRITE_QUEUE_SIZE", 0)  # 0 = unbounded

# Inbound line pool
MAX_CONCURRENT_LINES = _env_number("MAX_CONCURRENT_LINES", 8)
LINE_QUEUE_SIZE = _env_number("LINE_QUEUE_SIZE", 256)

# Built-in commands
COMMAND_PREFIX = "."
SEARCH_URL = "https://api.duckduckgo.com/"
SEARCH_TIMEOUT = _env_number("SEARCH_TIMEOUT", 10.0)
SEARCH_RETRY_ATTEMPTS = _env_number("SEARCH_RETRY_ATTEMPTS", 2)
SEARCH_MAX_RESULTS = _env_number("SEARCH_MAX_RESULTS", 1)

# Entry point reconnects; 0 disables them
RECONNECT_ATTEMPTS = _env_number("RECONNECT_ATTEMPTS", 0)
RECONNECT_MAX_DELAY = _env_number("RECONNECT_MAX_DELAY", 60.0)

# Error aggregation
ERROR_HISTORY_PER_TYPE = _env_number("ERROR_HISTORY_PER_TYPE", 1000)
ERROR_ALERT_RATE_PER_HOUR = _env_number("ERROR_ALERT_RATE_PER_HOUR", 10.0)
