"""Per-line event routing."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Protocol

from ..logs.logger import logger
from .dispatcher import CommandDispatcher, invoke_handler
from .heartbeat import PING, PingResponder
from .models import ParsedMessage, ParseFailure
from .parser import build_command, build_privmsg, is_command, parse_line

if TYPE_CHECKING:  # pragma: no cover
    from ..config.model import BotConfig


class LineWriter(Protocol):
    async def write_line(self, text: str) -> None: ...


ChatterHook = Callable[[str | None, str | None], Any]


class RouteOutcome(Enum):
    DROPPED = auto()
    PONG = auto()
    PRIVILEGE_GRANT = auto()
    COMMAND = auto()
    GREETING = auto()
    CHATTER = auto()


JOIN = "JOIN"
OPERATOR_MODE = "+o"


async def _noop_chatter(message: str | None, channel: str | None) -> None:  # noqa: ARG001
    return None


class EventRouter:
    """Route one inbound line to exactly one handling step.

    Order: ping reply, operator grant for the trusted identity joining,
    command dispatch, greeting, chatter hook. Each call works only on its
    own line plus the immutable configuration, so calls for different lines
    may run concurrently.
    """

    def __init__(
        self,
        config: BotConfig,
        writer: LineWriter,
        dispatcher: CommandDispatcher | None = None,
        chatter: ChatterHook | None = None,
    ):
        self.config = config
        self.writer = writer
        self.ping_responder = PingResponder(writer, config.nickname)
        self.dispatcher = dispatcher or CommandDispatcher(
            command_prefix=config.command_prefix, nickname=config.nickname
        )
        self.chatter: ChatterHook = chatter or _noop_chatter
        self._greeting_trigger = f"hi {config.nickname}"

    async def answer_probe(self, raw_line: str) -> bool:
        """Answer ``raw_line`` right away if it is a server ``PING``.

        Called by the reader before a line is queued for the workers, so a
        probe is never stuck behind slow command handlers.
        """
        if not raw_line.startswith(PING) and f" {PING}" not in raw_line:
            return False
        parsed = parse_line(raw_line)
        if isinstance(parsed, ParseFailure):
            return False
        return await self.ping_responder.respond(parsed)

    async def route(self, raw_line: str) -> RouteOutcome:
        """Parse ``raw_line`` and route it; unparsable lines are dropped."""
        parsed = parse_line(raw_line)
        if isinstance(parsed, ParseFailure):
            logger.log_event(
                "irc",
                "parse_failed",
                level=logging.DEBUG,
                user=self.config.nickname,
                raw=parsed.raw,
                reason=parsed.reason,
            )
            return RouteOutcome.DROPPED
        logger.log_event(
            "irc",
            "raw",
            level=logging.DEBUG,
            user=self.config.nickname,
            raw=raw_line,
        )
        return await self.route_message(parsed)

    async def route_message(self, message: ParsedMessage) -> RouteOutcome:
        """Run the first matching handling step for an already parsed line."""
        if await self.ping_responder.respond(message):
            return RouteOutcome.PONG
        if self._is_trusted_join(message):
            await self._grant_operator(message)
            return RouteOutcome.PRIVILEGE_GRANT
        if is_command(message, self.config.command_prefix):
            await self.dispatcher.dispatch(message)
            return RouteOutcome.COMMAND
        if message.trailing and self._greeting_trigger in message.trailing:
            await self._greet(message)
            return RouteOutcome.GREETING
        await self._chatter(message)
        return RouteOutcome.CHATTER

    def _is_trusted_join(self, message: ParsedMessage) -> bool:
        # Claimed-nickname match only; the network identity is not verified.
        trusted = self.config.trusted_identity
        return (
            bool(trusted)
            and message.command == JOIN
            and message.nickname == trusted
            and self._join_channel(message) is not None
        )

    @staticmethod
    def _join_channel(message: ParsedMessage) -> str | None:
        # Servers send either "JOIN #chan" or "JOIN :#chan".
        return message.target or (message.trailing or None)

    async def _grant_operator(self, message: ParsedMessage) -> None:
        """Give the trusted identity operator status in the joined channel."""
        channel = self._join_channel(message) or ""
        await self.writer.write_line(
            build_command("MODE", channel, OPERATOR_MODE, message.nickname)
        )
        logger.log_event(
            "irc",
            "privilege_grant",
            user=self.config.nickname,
            channel=channel,
            nick=message.nickname,
            mode=OPERATOR_MODE,
        )

    async def _greet(self, message: ParsedMessage) -> None:
        """Answer a greeting addressed to the bot in its channel."""
        channel = message.middle
        if not channel:
            return
        await self.writer.write_line(build_privmsg(channel, f"Hi there {message.nickname}"))
        logger.log_event(
            "irc",
            "greeting",
            level=logging.DEBUG,
            user=self.config.nickname,
            channel=channel,
            nick=message.nickname,
        )

    async def _chatter(self, message: ParsedMessage) -> None:
        """Hand the line to the chatter hook, logging its failures."""
        try:
            await invoke_handler(self.chatter, message.trailing, message.middle)
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "irc",
                "chatter_error",
                level=logging.ERROR,
                user=self.config.nickname,
                channel=message.middle,
                error=str(e),
                error_type=type(e).__name__,
            )
