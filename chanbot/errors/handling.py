"""Error categorisation, logging and retry helpers."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..logging_config import log_structured_error
from .internal import (
    ConfigError,
    InternalError,
    NetworkError,
    ParsingError,
)

T = TypeVar("T")

_TRANSPORT_ERRORS = (NetworkError, OSError, aiohttp.ClientError)


def categorize_error(error: BaseException) -> str:
    """Map an exception onto the category used by the error aggregator."""
    if isinstance(error, _TRANSPORT_ERRORS):
        return "network"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, ConfigError):
        return "config"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(message: str, error: BaseException, context: dict[str, Any] | None = None) -> None:
    """Record ``error`` under its category with ``message`` as the headline."""
    log_structured_error(
        error_type=categorize_error(error),
        message=f"{message}: {error}",
        exception=error,
        context=context,
    )


async def handle_api_error(operation: Callable[[], Awaitable[T]], context: str) -> T:
    """Await an HTTP operation, translating failures into chanbot errors.

    ``InternalError`` subclasses pass through untouched. Transport failures
    and 5xx answers become ``NetworkError`` (worth retrying); 4xx answers and
    undecodable bodies become ``ParsingError``. Every translated failure is
    logged once, with the HTTP status when there is one.
    """
    try:
        return await operation()
    except InternalError:
        raise
    except (aiohttp.ClientError, TimeoutError, ValueError, OSError) as e:
        details: dict[str, Any] = {"operation": context, "timestamp": time.time()}
        status = getattr(e, "status", None)
        if status is not None:
            details["http_status"] = status
        log_error(f"API operation failed in {context}", e, context=details)

        if isinstance(e, aiohttp.ContentTypeError | ValueError):
            raise ParsingError(f"Unreadable response in {context}: {e}", data=details) from e
        if isinstance(e, aiohttp.ClientResponseError):
            if e.status >= 500:
                raise NetworkError(f"Server error in {context} (HTTP {e.status})", data=details) from e
            raise ParsingError(f"Client error in {context} (HTTP {e.status})", data=details) from e
        raise NetworkError(f"Network connectivity issue in {context}: {e}", data=details) from e


def is_retryable_error(error: BaseException) -> bool:
    return isinstance(error, NetworkError | OSError)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    context: str,
    max_attempts: int = 3,
    max_wait: float = 10.0,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` is reached.

    ``operation`` may be any callable returning an awaitable. Only retryable
    (network) failures trigger another attempt; the final failure is
    re-raised as is.
    """

    def before_retry(state: RetryCallState) -> None:
        if state.attempt_number > 1:
            logging.debug(f"🔄 Retrying {context} (attempt {state.attempt_number}/{max_attempts})")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=0.5, max=max_wait),
        retry=retry_if_exception(is_retryable_error),
        before=before_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("unreachable: tenacity re-raises the last failure")


__all__ = [
    "categorize_error",
    "handle_api_error",
    "is_retryable_error",
    "log_error",
    "with_retries",
]
