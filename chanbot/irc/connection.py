"""Server connection: dial, registration handshake and serialized writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from ..constants import CONNECT_TIMEOUT, READ_LIMIT_BYTES, WRITE_QUEUE_SIZE
from ..errors.internal import NetworkError
from ..logs.logger import logger
from .models import ConnectionState
from .parser import format_line

if TYPE_CHECKING:  # pragma: no cover
    from ..config.model import BotConfig

LINE_TERMINATOR = "\r\n"


class IRCConnection:
    """Line-oriented connection to one IRC server.

    Every outbound line goes through a queue drained by a single writer
    task, so concurrent routers never interleave partial writes or drain the
    stream concurrently. A write failure ends the writer task with a
    ``NetworkError``; the owner watches ``writer_task`` to surface it.
    """

    def __init__(self, config: BotConfig, connect_timeout: float = CONNECT_TIMEOUT):
        self.config = config
        self.connect_timeout = connect_timeout
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self.state = ConnectionState.DISCONNECTED
        self.writer_task: asyncio.Task[None] | None = None
        self._outbound: asyncio.Queue[str | None] = asyncio.Queue(maxsize=WRITE_QUEUE_SIZE)

    @property
    def nickname(self) -> str:
        return self.config.nickname

    def _set_state(self, new_state: ConnectionState) -> None:
        if self.state != new_state:
            logger.log_event(
                "irc",
                "state_change",
                level=logging.DEBUG,
                user=self.nickname,
                old_state=self.state.name,
                new_state=new_state.name,
            )
            self.state = new_state

    async def open(self) -> None:
        """Dial the server, start the writer and send the handshake.

        Raises:
            NetworkError: If the server cannot be reached in time.
        """
        self._set_state(ConnectionState.CONNECTING)
        logger.log_event(
            "irc",
            "connect_start",
            user=self.nickname,
            server=self.config.server,
            port=self.config.port,
        )
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(
                    self.config.server, self.config.port, limit=READ_LIMIT_BYTES
                ),
                timeout=self.connect_timeout,
            )
        except TimeoutError as e:
            self._set_state(ConnectionState.DISCONNECTED)
            logger.log_event(
                "irc",
                "connect_timeout",
                level=logging.ERROR,
                user=self.nickname,
                timeout=self.connect_timeout,
            )
            raise NetworkError(
                f"Timed out connecting to {self.config.address}",
                data={"timeout": self.connect_timeout},
            ) from e
        except OSError as e:
            self._set_state(ConnectionState.DISCONNECTED)
            logger.log_event(
                "irc",
                "connect_network_error",
                level=logging.ERROR,
                user=self.nickname,
                error=str(e),
            )
            raise NetworkError(f"Could not connect to {self.config.address}: {e}") from e
        self.attach(self.reader, self.writer)
        logger.log_event("irc", "connected", user=self.nickname, server=self.config.server)
        await self.register()

    def attach(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Use already-open streams and start the writer task."""
        self.reader = reader
        self.writer = writer
        self._outbound = asyncio.Queue(maxsize=WRITE_QUEUE_SIZE)
        self.writer_task = asyncio.create_task(self._write_loop(), name="irc-writer")
        self._set_state(ConnectionState.REGISTERING)

    async def register(self) -> None:
        """Send USER/NICK and join every configured channel."""
        nick = self.nickname
        await self.write_line(format_line("USER", middle=f"{nick} 8 *", trailing=nick))
        await self.write_line(format_line("NICK", middle=nick))
        for channel in self.config.channels:
            logger.log_event("irc", "join_start", user=nick, channel=channel)
            await self.write_line(format_line("JOIN", middle=channel))
        self._set_state(ConnectionState.READY)

    async def write_line(self, text: str) -> None:
        """Queue ``text`` for sending; the CRLF terminator is appended.

        Raises:
            ValueError: If ``text`` contains a line terminator.
            NetworkError: If the connection is closed or the writer failed.
        """
        if "\r" in text or "\n" in text:
            raise ValueError("outbound line must not contain CR or LF")
        task = self.writer_task
        if task is None or self.state in (ConnectionState.CLOSED, ConnectionState.DISCONNECTED):
            raise NetworkError("Connection is not open")
        if task.done():
            error = None if task.cancelled() else task.exception()
            raise NetworkError("Connection writer has stopped") from error
        await self._outbound.put(text)

    async def _write_loop(self) -> None:
        while True:
            line = await self._outbound.get()
            if line is None:
                return
            if self.writer is None:
                raise NetworkError("Connection writer missing")
            try:
                self.writer.write(f"{line}{LINE_TERMINATOR}".encode())
                await self.writer.drain()
            except (OSError, ConnectionError) as e:
                logger.log_event(
                    "irc",
                    "write_error",
                    level=logging.ERROR,
                    user=self.nickname,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise NetworkError(f"Write to {self.config.address} failed: {e}") from e

    async def read_lines(self) -> AsyncIterator[str]:
        """Yield inbound lines without terminators until EOF.

        Raises:
            NetworkError: If reading from the socket fails.
        """
        reader = self.reader
        if reader is None:
            raise NetworkError("Connection is not open")
        while True:
            try:
                data = await reader.readline()
            except ValueError:
                # Line longer than the stream limit; the reader dropped it.
                logger.log_event(
                    "irc",
                    "line_too_long",
                    level=logging.WARNING,
                    user=self.nickname,
                    limit=READ_LIMIT_BYTES,
                )
                continue
            except (OSError, ConnectionError) as e:
                raise NetworkError(f"Read from {self.config.address} failed: {e}") from e
            if not data:
                return
            yield data.decode("utf-8", errors="replace").rstrip("\r\n")

    async def close(self, flush_timeout: float = 5.0) -> None:
        """Flush queued lines, then close the socket."""
        if self.state == ConnectionState.CLOSED:
            return
        task = self.writer_task
        if task is not None and not task.done():
            if self._outbound.full():
                task.cancel()
            else:
                self._outbound.put_nowait(None)
            try:
                # Writer failures were logged by the writer itself.
                await asyncio.wait_for(
                    asyncio.gather(task, return_exceptions=True), timeout=flush_timeout
                )
            except TimeoutError:
                logger.log_event(
                    "irc",
                    "flush_timeout",
                    level=logging.WARNING,
                    user=self.nickname,
                    pending=self._outbound.qsize(),
                )
        if self.writer is not None:
            try:
                self.writer.close()
                await self.writer.wait_closed()
            except (OSError, ConnectionError) as e:
                logger.log_event(
                    "irc",
                    "close_error",
                    level=logging.WARNING,
                    user=self.nickname,
                    error=str(e),
                )
        self.writer = None
        self.reader = None
        self._set_state(ConnectionState.CLOSED)
        logger.log_event("irc", "disconnected", level=logging.WARNING, user=self.nickname)
