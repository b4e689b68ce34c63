"""Event template catalog.

Templates live in ``event_templates.json`` next to this module, keyed by
domain then action, e.g. ``{"irc": {"pong": "🏓 {reply}"}}``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

TEMPLATES_PATH = Path(__file__).with_name("event_templates.json")

EVENT_TEMPLATES: dict[tuple[str, str], str] = {}


def _flatten(document: Any) -> dict[tuple[str, str], str]:
    if not isinstance(document, dict):
        return {}
    return {
        (domain, action): template
        for domain, actions in document.items()
        if isinstance(actions, dict)
        for action, template in actions.items()
        if isinstance(template, str)
    }


def load_event_templates(path: Path | None = None) -> dict[tuple[str, str], str]:
    """Read the catalog at ``path`` (default: the packaged file).

    A missing or unreadable file yields a single ``("app", "load_error")``
    entry instead of raising, so logging keeps working.
    """
    path = path or TEMPLATES_PATH
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {("app", "load_error"): "Event templates file missing"}
    except (OSError, ValueError) as e:
        return {("app", "load_error"): f"Failed to load event templates: {e}"[:200]}
    return _flatten(document)


def reload_event_templates(path: Path | None = None) -> None:
    # In place: the logger module holds a reference to this dict.
    templates = load_event_templates(path)
    EVENT_TEMPLATES.clear()
    EVENT_TEMPLATES.update(templates)


reload_event_templates()

__all__ = ["EVENT_TEMPLATES", "TEMPLATES_PATH", "load_event_templates", "reload_event_templates"]
