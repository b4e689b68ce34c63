"""Keep-alive probe handling."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from ..logs.logger import logger
from .parser import format_line

if TYPE_CHECKING:  # pragma: no cover
    from .models import ParsedMessage
    from .router import LineWriter


PING = "PING"
PONG = "PONG"


def build_pong(message: ParsedMessage) -> str:
    """Reply line echoing the probe's payload.

    The trailing payload is only re-marked with ``:`` when it needs it
    (empty, contains a space, or itself starts with ``:``), so
    ``PING :abc123`` is answered with ``PONG abc123``.
    """
    trailing = message.trailing
    if trailing is None:
        return format_line(PONG, middle=message.middle)
    if trailing and " " not in trailing and not trailing.startswith(":"):
        middle = f"{message.middle} {trailing}" if message.middle else trailing
        return format_line(PONG, middle=middle)
    return format_line(PONG, middle=message.middle, trailing=trailing)


class PingResponder:
    """Answers server ``PING`` probes.

    Must run before any other routing step: a probe left unanswered past
    the server's timeout gets the client disconnected.
    """

    def __init__(self, writer: LineWriter, nickname: str | None = None):
        self.writer = writer
        self.nickname = nickname
        self.last_ping_from_server = 0.0

    async def respond(self, message: ParsedMessage) -> bool:
        """Reply to ``message`` if it is a probe.

        Returns:
            True when the message was a probe and has been answered.

        Raises:
            NetworkError: Propagated from the writer; a failed probe reply
                is a connection failure.
        """
        if message.command != PING:
            return False
        reply = build_pong(message)
        await self.writer.write_line(reply)
        self.last_ping_from_server = time.time()
        logger.log_event(
            "irc",
            "pong",
            level=logging.DEBUG,
            user=self.nickname,
            reply=reply,
        )
        return True
