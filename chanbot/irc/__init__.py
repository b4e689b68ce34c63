"""IRC subsystem package.

Contains the line parser, ping responder, command dispatcher, event router,
server connection and the bot orchestrator tying them together.
"""

from .client import ChatBot  # noqa: F401
from .connection import IRCConnection  # noqa: F401
from .dispatcher import CommandDispatcher  # noqa: F401
from .heartbeat import PingResponder, build_pong  # noqa: F401
from .models import (  # noqa: F401
    CommandInvocation,
    ConnectionState,
    ParsedMessage,
    ParseFailure,
    ParseResult,
)
from .parser import (  # noqa: F401
    build_command,
    build_privmsg,
    format_line,
    format_message,
    parse_line,
    split_command,
)
from .router import EventRouter, RouteOutcome  # noqa: F401

__all__ = [
    "ChatBot",
    "CommandDispatcher",
    "CommandInvocation",
    "ConnectionState",
    "EventRouter",
    "IRCConnection",
    "ParseFailure",
    "ParseResult",
    "ParsedMessage",
    "PingResponder",
    "RouteOutcome",
    "build_command",
    "build_pong",
    "build_privmsg",
    "format_line",
    "format_message",
    "parse_line",
    "split_command",
]
