"""Event logger used by the IRC core and command collaborators."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from .event_catalog import EVENT_TEMPLATES

PREFIX_WIDTH = 24
EVENT_NAME_WIDTH = 32


def debug_enabled() -> bool:
    return os.environ.get("DEBUG", "false").lower() in ("true", "1", "yes")


def render_event(domain: str, action: str, fields: Mapping[str, object]) -> tuple[str, bool]:
    """Human text for an event, and whether it was derived from the event name.

    A template whose placeholders are not all supplied is returned unformatted.
    """
    template = EVENT_TEMPLATES.get((domain, action))
    if template is None:
        return f"{domain.replace('_', ' ')}: {action.replace('_', ' ')}", True
    try:
        return template.format(**fields), False
    except (KeyError, IndexError, ValueError):
        return template, False


def format_prefix(user: object, channel: object) -> str:
    """``[nick#channel]`` column, padded so messages line up."""
    label = user if isinstance(user, str) and user else "system"
    if isinstance(channel, str) and channel:
        label += channel if channel.startswith("#") else f"#{channel}"
    return f"[{label.ljust(PREFIX_WIDTH)[:PREFIX_WIDTH]}]"


def format_event_name(name: str) -> str:
    if len(name) <= EVENT_NAME_WIDTH:
        return name.ljust(EVENT_NAME_WIDTH)
    return name[: EVENT_NAME_WIDTH - 1] + "…"


class BotLogger:
    """Emit one log line per ``(domain, action)`` event.

    ``user`` and ``channel`` keyword fields fill the prefix column; the
    remaining fields feed the event template and, when ``DEBUG`` is set, are
    appended as ``key=value`` context after the event name. Records go through
    the standard ``logging`` hierarchy, so the colorlog handler installed by
    ``LoggerConfigurator`` renders them.
    """

    def __init__(self, name: str = "chanbot") -> None:
        self.logger = logging.getLogger(name)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def log_event(
        self,
        domain: str,
        action: str,
        level: int = logging.INFO,
        human: str | None = None,
        *,
        exc_info: bool = False,
        **fields: object,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        user = fields.pop("user", None)
        channel = fields.pop("channel", None)
        if human is None:
            human, derived = render_event(
                domain, action, {**fields, "user": user, "channel": channel}
            )
            if derived:
                fields["derived"] = True
        prefix = format_prefix(user, channel)
        if debug_enabled():
            message = f"{format_event_name(f'{domain}_{action}'.lower())} {prefix} {human}"
            if fields:
                message += " (" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")"
        else:
            message = f"{prefix} {human}"
        self.logger.log(level, message, exc_info=exc_info)


logger = BotLogger()
