r"""
Logging setup for chanbot.

Installs a colorlog handler on the root logger and keeps per-category error
counts so that a flapping connection or a failing command collaborator shows
up as a rate, not only as a stream of individual lines.
"""

import atexit
import logging
import os
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, TextIO

import colorlog

from .constants import ERROR_ALERT_RATE_PER_HOUR, ERROR_HISTORY_PER_TYPE

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}
# Third-party loggers that are too chatty at DEBUG.
QUIET_LOGGERS = ("aiohttp", "asyncio")


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    timestamp: float
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class ErrorAggregator:
    """Bounded error history per category for the lifetime of the process."""

    def __init__(self, history: int = ERROR_HISTORY_PER_TYPE):
        self.history = history
        self.errors: dict[str, deque[ErrorRecord]] = {}
        self.lock = threading.Lock()
        self.start_time = time.time()

    def record_error(self, error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
        record = ErrorRecord(time.time(), message, dict(context or {}))
        with self.lock:
            records = self.errors.get(error_type)
            if records is None:
                records = self.errors[error_type] = deque(maxlen=self.history)
            records.append(record)

    def _hours_running(self, now: float) -> float:
        # No extrapolation during the first hour: a burst of 3 errors in
        # the first minute is a rate of 3/hour, not 180/hour.
        return max((now - self.start_time) / 3600, 1.0)

    def rate_per_hour(self, error_type: str) -> float:
        with self.lock:
            count = len(self.errors.get(error_type, ()))
            return count / self._hours_running(time.time())

    def get_error_summary(self) -> dict[str, dict[str, Any]]:
        now = time.time()
        with self.lock:
            hours = self._hours_running(now)
            return {
                error_type: {
                    "total_count": len(records),
                    "recent_count": sum(1 for r in records if now - r.timestamp < 3600),
                    "rate_per_hour": len(records) / hours,
                    "last_occurrence": records[-1] if records else None,
                }
                for error_type, records in self.errors.items()
            }

    def should_alert(self, error_type: str, threshold_rate: float = ERROR_ALERT_RATE_PER_HOUR) -> bool:
        return error_type in self.errors and self.rate_per_hour(error_type) > threshold_rate

    def reset(self) -> None:
        with self.lock:
            self.errors.clear()
            self.start_time = time.time()

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return
        lines = ["🚨 ERROR SUMMARY REPORT"]
        for error_type, stats in sorted(summary.items()):
            lines.append(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour"
            )
            if stats["last_occurrence"] is not None:
                lines.append(f"    Last: {stats['last_occurrence'].message}")
        logging.warning("\n".join(lines))


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log ``message`` tagged with its category and count it.

    The record reads ``[CATEGORY] message | Exception: Type: text | Context:
    k=v | k=v``. A critical alert follows when the category's hourly rate
    passes ``ERROR_ALERT_RATE_PER_HOUR``.
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception is not None:
        parts.append(f"Exception: {type(exception).__name__}: {exception}")
    if context:
        parts.append("Context: " + " | ".join(f"{k}={v}" for k, v in context.items()))
    logging.log(level, " | ".join(parts))

    error_aggregator.record_error(error_type, message, context)
    if error_aggregator.should_alert(error_type):
        logging.critical(
            f"🚨 HIGH ERROR RATE ALERT: {error_type} occurring at "
            f"{error_aggregator.rate_per_hour(error_type):.1f}/hour"
        )


def log_final_error_summary() -> None:
    try:
        logging.info("📊 Final error summary before shutdown:")
        error_aggregator.log_summary_report()
    except Exception as e:  # noqa: BLE001
        logging.error(f"Failed to log final error summary: {e}")


class LoggerConfigurator:
    """Install the colorlog handler on the root logger.

    The level comes from the ``DEBUG`` environment variable (``true``, ``1``
    or ``yes`` for DEBUG, INFO otherwise). Configuring again replaces the
    handler installed before instead of stacking a second one.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream
        self.handler: logging.Handler | None = None
        self._summary_registered = False

    @staticmethod
    def resolve_level() -> int:
        debug_env = os.environ.get("DEBUG", "").lower()
        return logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO

    @staticmethod
    def build_formatter() -> colorlog.ColoredFormatter:
        return colorlog.ColoredFormatter(
            LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors=LOG_COLORS,
            secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
            reset=True,
        )

    def configure(self) -> int:
        """Apply the configuration and return the selected level."""
        level = self.resolve_level()
        root = logging.getLogger()
        if self.handler is not None:
            root.removeHandler(self.handler)
        handler = logging.StreamHandler(self.stream or sys.stderr)
        handler.setFormatter(self.build_formatter())
        root.addHandler(handler)
        root.setLevel(level)
        self.handler = handler

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.INFO))

        if not self._summary_registered:
            atexit.register(log_final_error_summary)
            self._summary_registered = True
        return level
