"""Chat bot orchestrator: reader loop, routing worker pool, outbound helpers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from ..commands.builtin import BuiltinCommands
from ..config.model import BotConfig
from ..constants import LINE_QUEUE_SIZE
from ..errors.handling import log_error
from ..errors.internal import ConnectionClosedError, NetworkError
from ..logs.logger import logger
from .connection import IRCConnection
from .dispatcher import CommandDispatcher
from .models import ConnectionState
from .parser import build_command, build_privmsg
from .router import ChatterHook, EventRouter


class ChatBot:  # pylint: disable=too-many-instance-attributes
    """One bot session on one server.

    A single reader task feeds inbound lines into a bounded queue consumed by
    ``config.max_concurrent_lines`` worker tasks; each worker routes one line
    at a time. Server probes are answered by the reader itself, ahead of the
    queue. Replies go through the connection's single writer task.
    """

    def __init__(
        self,
        config: BotConfig,
        *,
        connection: IRCConnection | None = None,
        dispatcher: CommandDispatcher | None = None,
        chatter: ChatterHook | None = None,
        install_builtins: bool = True,
        line_queue_size: int = LINE_QUEUE_SIZE,
    ):
        self.config = config
        self.connection = connection or IRCConnection(config)
        self.dispatcher = dispatcher or CommandDispatcher(
            command_prefix=config.command_prefix,
            error_reporter=self.send_message if config.report_command_errors else None,
            nickname=config.nickname,
        )
        self.builtins: BuiltinCommands | None = None
        if install_builtins:
            self.builtins = BuiltinCommands(self.send_message, config)
            self.builtins.install(self.dispatcher)
        self.router = EventRouter(config, self.connection, self.dispatcher, chatter)
        self.line_queue_size = line_queue_size
        self.running = False
        self.last_server_activity = 0.0
        self.lines_received = 0
        self._lines: asyncio.Queue[str] | None = None
        self._stopping = False

    @property
    def nickname(self) -> str:
        return self.config.nickname

    async def connect(self) -> None:
        """Open the server connection and send the handshake.

        Raises:
            NetworkError: If the server cannot be reached.
        """
        self._stopping = False
        await self.connection.open()

    async def run(self) -> None:
        """Process inbound lines until the connection ends.

        Returns normally after ``stop()``.

        Raises:
            NetworkError: On read/write failure or when the server closes the
                connection without ``stop()`` having been requested.
        """
        if self.connection.writer_task is None:
            raise NetworkError("Connection is not open")
        self.running = True
        lines: asyncio.Queue[str] = asyncio.Queue(maxsize=self.line_queue_size)
        self._lines = lines
        reader = asyncio.create_task(self._read_loop(lines), name="irc-reader")
        workers = [
            asyncio.create_task(self._worker(i, lines), name=f"irc-router-{i}")
            for i in range(self.config.max_concurrent_lines)
        ]
        watched = {reader, self.connection.writer_task, *workers}
        logger.log_event(
            "irc",
            "run_start",
            user=self.nickname,
            workers=len(workers),
            channels=",".join(self.config.channels),
        )
        try:
            done, _ = await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.running = False
            for task in (reader, *workers):
                task.cancel()
            await asyncio.gather(reader, *workers, return_exceptions=True)
        error = None if self._stopping else self._first_error(done)
        if error is not None:
            log_error("Connection failed", error, context={"server": self.config.address})
            if isinstance(error, NetworkError):
                raise error
            raise NetworkError(f"Connection to {self.config.address} failed: {error}") from error
        if not self._stopping:
            raise ConnectionClosedError(f"Connection closed by {self.config.address}")
        logger.log_event("irc", "run_stopped", user=self.nickname)

    @staticmethod
    def _first_error(done: set[asyncio.Task[Any]]) -> BaseException | None:
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                return task.exception()
        return None

    async def _read_loop(self, lines: asyncio.Queue[str]) -> None:
        async for line in self.connection.read_lines():
            self.last_server_activity = time.time()
            self.lines_received += 1
            if not line or await self.router.answer_probe(line):
                continue
            await lines.put(line)

    async def _worker(self, index: int, lines: asyncio.Queue[str]) -> None:
        while True:
            line = await lines.get()
            try:
                await self.router.route(line)
            except NetworkError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "irc",
                    "route_error",
                    level=logging.ERROR,
                    user=self.nickname,
                    worker=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                lines.task_done()

    async def stop(self) -> None:
        """Request shutdown: stop reading and close the connection."""
        if self._stopping:
            return
        self._stopping = True
        logger.log_event("irc", "stop_requested", user=self.nickname)
        await self.close()

    async def close(self) -> None:
        await self.connection.close()
        if self.builtins is not None:
            await self.builtins.close()

    async def send_raw(self, line: str) -> None:
        await self.connection.write_line(line)

    async def send_message(self, message: str, channel: str) -> None:
        """Send ``message`` to ``channel``; empty messages are not sent."""
        if not message:
            return
        # A single chat line cannot carry line breaks.
        for part in message.splitlines():
            if part:
                await self.connection.write_line(build_privmsg(channel, part))

    async def send_command(
        self, command: str, channel: str = "", args: str = "", users: str = ""
    ) -> None:
        await self.connection.write_line(build_command(command, channel, args, users))

    def get_health_snapshot(self) -> dict[str, Any]:
        now = time.time()
        last_ping = self.router.ping_responder.last_ping_from_server
        return {
            "nickname": self.nickname,
            "server": self.config.address,
            "state": self.connection.state.name,
            "connected": self.connection.state == ConnectionState.READY,
            "running": self.running,
            "lines_received": self.lines_received,
            "pending_lines": self._lines.qsize() if self._lines is not None else 0,
            "time_since_activity": (
                now - self.last_server_activity if self.last_server_activity > 0 else None
            ),
            "time_since_ping": now - last_ping if last_ping > 0 else None,
        }
