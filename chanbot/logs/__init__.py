"""Event logging: the template catalog and the ``BotLogger`` that renders it."""

from .event_catalog import (  # noqa: F401
    EVENT_TEMPLATES,
    load_event_templates,
    reload_event_templates,
)
from .logger import BotLogger, logger  # noqa: F401

__all__ = [
    "BotLogger",
    "EVENT_TEMPLATES",
    "load_event_templates",
    "logger",
    "reload_event_templates",
]
