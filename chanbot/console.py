"""Relay raw protocol lines typed on the console to the server."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import TYPE_CHECKING, TextIO

from .errors.internal import NetworkError

if TYPE_CHECKING:  # pragma: no cover
    from .irc.client import ChatBot


def _pump_stream(
    stream: TextIO, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str | None]
) -> None:
    # Runs in a daemon thread: blocking reads must not hold up interpreter exit.
    try:
        for line in iter(stream.readline, ""):
            loop.call_soon_threadsafe(queue.put_nowait, line)
    finally:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            pass  # loop already closed


async def relay_console(bot: ChatBot, stream: TextIO | None = None) -> None:
    """Send every non-empty line read from ``stream`` to the server as-is.

    Ends at end of input. A closed connection ends the relay as well.
    """
    stream = stream or sys.stdin
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    thread = threading.Thread(
        target=_pump_stream, args=(stream, loop, queue), name="console-relay", daemon=True
    )
    thread.start()
    while True:
        line = await queue.get()
        if line is None:
            return
        line = line.rstrip("\r\n")
        if not line:
            continue
        try:
            await bot.send_raw(line)
        except NetworkError as e:
            logging.warning(f"⌨️ Console relay stopped: {e}")
            return
        except ValueError as e:
            logging.warning(f"⌨️ Console line rejected: {e}")
