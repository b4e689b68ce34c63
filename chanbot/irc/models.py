"""Shared IRC data models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    REGISTERING = auto()
    READY = auto()
    CLOSED = auto()


@dataclass(frozen=True, slots=True)
class ParsedMessage:
    """One protocol line decomposed into its four fields.

    ``trailing`` is ``None`` when the line has no trailing marker and ``""``
    when the marker is present but nothing follows it.
    """

    prefix: str | None
    command: str
    middle: str | None = None
    trailing: str | None = None

    @property
    def nickname(self) -> str:
        """Sender nickname: the prefix up to the first ``!``."""
        if not self.prefix:
            return ""
        return self.prefix.split("!", 1)[0]

    @property
    def target(self) -> str | None:
        """Channel or nick the line was directed at (first middle param)."""
        if not self.middle:
            return None
        return self.middle.split(" ", 1)[0]


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """Outcome for a line that does not match the line grammar."""

    raw: str
    reason: str = "no match"


ParseResult = ParsedMessage | ParseFailure


@dataclass(frozen=True, slots=True)
class CommandInvocation:
    """A chat message recognised as an in-band command."""

    name: str
    args: str
    channel: str | None
