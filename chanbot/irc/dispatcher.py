"""In-band command dispatch."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..constants import COMMAND_PREFIX
from ..errors.handling import log_error
from ..logs.logger import logger
from .models import CommandInvocation, ParsedMessage
from .parser import split_command

CommandHandler = Callable[[str, str | None], Any]
ErrorReporter = Callable[[str, str], Awaitable[None]]


async def invoke_handler(handler: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async handler, awaiting its result when needed."""
    if inspect.iscoroutinefunction(handler):
        await handler(*args)
        return
    maybe = handler(*args)
    if inspect.isawaitable(maybe):
        await maybe


async def _noop_fallback(args: str, channel: str | None) -> None:  # noqa: ARG001
    return None


class CommandDispatcher:
    """Resolve command names against a registry and run their handlers.

    Names are matched exactly, prefix character included (``.g``). Names not
    in the registry go to the fallback handler with the same arguments.
    Handler failures are logged and, when an error reporter is set, reported
    to the channel; they never propagate to the caller.
    """

    def __init__(
        self,
        handlers: Mapping[str, CommandHandler] | None = None,
        fallback: CommandHandler | None = None,
        *,
        command_prefix: str = COMMAND_PREFIX,
        error_reporter: ErrorReporter | None = None,
        nickname: str | None = None,
    ):
        self._handlers: dict[str, CommandHandler] = dict(handlers or {})
        self.fallback: CommandHandler = fallback or _noop_fallback
        self.command_prefix = command_prefix
        self.error_reporter = error_reporter
        self.nickname = nickname

    def register(self, name: str, handler: CommandHandler) -> None:
        """Add or replace the handler for ``name`` (prefix included)."""
        if not name or any(c.isspace() for c in name):
            raise ValueError(f"invalid command name: {name!r}")
        self._handlers[name] = handler

    def unregister(self, name: str) -> None:
        """Remove ``name``; unknown names are ignored."""
        self._handlers.pop(name, None)

    def set_fallback(self, handler: CommandHandler) -> None:
        """Set the handler for names missing from the registry."""
        self.fallback = handler

    def names(self) -> list[str]:
        """Registered command names, sorted."""
        return sorted(self._handlers)

    def resolve(self, name: str) -> CommandHandler | None:
        """Registered handler for ``name``, or None."""
        return self._handlers.get(name)

    def parse(self, message: ParsedMessage) -> CommandInvocation | None:
        """Split ``message`` into a command invocation, or None if it is not one."""
        return split_command(message, self.command_prefix)

    async def dispatch(self, message: ParsedMessage) -> bool:
        """Run the handler for the command carried by ``message``.

        Returns:
            False if ``message`` is not a command, True otherwise (including
            when the handler failed).
        """
        invocation = self.parse(message)
        if invocation is None:
            return False
        await self.execute(invocation)
        return True

    async def execute(self, invocation: CommandInvocation) -> None:
        """Run the resolved handler (or the fallback), containing its failures."""
        handler = self.resolve(invocation.name)
        known = handler is not None
        if handler is None:
            handler = self.fallback
        logger.log_event(
            "command",
            "dispatch" if known else "fallback",
            level=logging.DEBUG,
            user=self.nickname,
            channel=invocation.channel,
            command=invocation.name,
            args=invocation.args,
        )
        try:
            await invoke_handler(handler, invocation.args, invocation.channel)
        except Exception as e:  # noqa: BLE001
            await self._handle_failure(invocation, e)

    async def _handle_failure(self, invocation: CommandInvocation, error: Exception) -> None:
        """Log a handler failure and report it to the channel when enabled."""
        logger.log_event(
            "command",
            "handler_error",
            level=logging.ERROR,
            user=self.nickname,
            channel=invocation.channel,
            command=invocation.name,
            error=str(error),
            error_type=type(error).__name__,
        )
        log_error(
            f"Command {invocation.name} failed",
            error,
            context={"channel": invocation.channel, "args": invocation.args},
        )
        if not self.error_reporter or not invocation.channel:
            return
        try:
            await self.error_reporter(f"Command {invocation.name} failed", invocation.channel)
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "command",
                "report_error",
                level=logging.WARNING,
                user=self.nickname,
                channel=invocation.channel,
                error=str(e),
                error_type=type(e).__name__,
            )
