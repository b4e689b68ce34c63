"""IRC line parsing utilities."""

from __future__ import annotations

import re

from .models import CommandInvocation, ParsedMessage, ParseFailure, ParseResult

# [':' prefix SP] command [SP middle] [SP ':' trailing]
# Only the head is matched by regex. The parameters are split with str.find
# so that long runs of spaces cost linear time.
_HEAD_RE = re.compile(r"(?::(?P<prefix>\S+) +)?(?P<command>[^:\s]\S*)")
TRAILING_MARKER = " :"


def parse_line(raw_line: str) -> ParseResult:
    """Decompose ``raw_line`` into a ParsedMessage.

    The middle field runs up to the first ``" :"`` marker (spaces before the
    marker are dropped); everything after the marker is the trailing field,
    kept verbatim. Never raises: anything that is not a string or does not
    match the grammar yields a ParseFailure.
    """
    if not isinstance(raw_line, str):
        return ParseFailure(raw=repr(raw_line), reason="not a string")
    if "\r" in raw_line or "\n" in raw_line:
        return ParseFailure(raw=raw_line, reason="embedded line terminator")
    head = _HEAD_RE.match(raw_line)
    if head is None:
        return ParseFailure(raw=raw_line)
    rest = raw_line[head.end():]
    middle = trailing = None
    if rest:
        params = rest.lstrip(" ")
        if not rest.startswith(" ") or not params or params[0].isspace():
            return ParseFailure(raw=raw_line)
        if params[0] == ":":
            trailing = params[1:]
        else:
            marker = params.find(TRAILING_MARKER)
            if marker == -1:
                middle = params
            else:
                middle = params[:marker].rstrip(" ")
                trailing = params[marker + len(TRAILING_MARKER):]
    return ParsedMessage(
        prefix=head.group("prefix"),
        command=head.group("command"),
        middle=middle,
        trailing=trailing,
    )


def format_line(
    command: str,
    middle: str | None = None,
    trailing: str | None = None,
    prefix: str | None = None,
) -> str:
    """Build a wire line (without CRLF) from its fields."""
    parts: list[str] = []
    if prefix:
        parts.append(f":{prefix}")
    parts.append(command)
    if middle:
        parts.append(middle)
    if trailing is not None:
        parts.append(f":{trailing}")
    return " ".join(parts)


def format_message(message: ParsedMessage) -> str:
    return format_line(
        message.command,
        middle=message.middle,
        trailing=message.trailing,
        prefix=message.prefix,
    )


def is_command(message: ParsedMessage, command_prefix: str) -> bool:
    return bool(message.trailing) and message.trailing.startswith(command_prefix)  # type: ignore[union-attr]


def split_command(message: ParsedMessage, command_prefix: str) -> CommandInvocation | None:
    """Extract ``(name, args)`` from a command-style trailing field.

    The name is the first whitespace-delimited token, prefix character
    included; the arguments are the remainder with surrounding whitespace
    removed.
    """
    if not is_command(message, command_prefix):
        return None
    trailing = message.trailing or ""
    tokens = trailing.split(None, 1)
    name = tokens[0] if tokens else trailing
    args = trailing[len(name):].strip()
    return CommandInvocation(name=name, args=args, channel=message.middle)


def build_privmsg(channel: str, message: str) -> str:
    return format_line("PRIVMSG", middle=channel, trailing=message)


def build_command(command: str, channel: str = "", args: str = "", users: str = "") -> str:
    """Raw command line in ``COMMAND <channel> <args> <users>`` order.

    Empty fields are skipped, e.g. ``build_command("MODE", "#go", "+o", "Pent")``
    gives ``MODE #go +o Pent``.
    """
    middle = " ".join(part for part in (channel, args, users) if part)
    return format_line(command, middle=middle or None)
