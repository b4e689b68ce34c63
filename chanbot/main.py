#!/usr/bin/env python3
"""
Main entry point for chanbot
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import load_config
from .config.model import BotConfig
from .console import relay_console
from .constants import RECONNECT_ATTEMPTS, RECONNECT_MAX_DELAY
from .errors.handling import log_error
from .errors.internal import ConfigError, NetworkError
from .irc.client import ChatBot
from .logging_config import LoggerConfigurator


class SignalHandler:
    """Translate SIGINT/SIGTERM into an orderly bot shutdown."""

    def __init__(self) -> None:
        self.shutdown_initiated = False
        self.bot: ChatBot | None = None
        self._stop_task: asyncio.Task[None] | None = None

    def attach(self, bot: ChatBot) -> None:
        self.bot = bot

    def stop(self) -> None:
        if self.shutdown_initiated:
            return
        self.shutdown_initiated = True
        logging.warning("🛑 Signal received - initiating shutdown")
        if self.bot is not None:
            self._stop_task = asyncio.get_running_loop().create_task(self.bot.stop())

    def setup_signal_handlers(self) -> None:  # pragma: no cover
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                signal.signal(sig, lambda _signum, _frame: loop.call_soon_threadsafe(self.stop))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chanbot", description="Minimal IRC bot: pings, commands, greetings."
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="path to the JSON config file (default: $CHANBOT_CONF_FILE or config.json)",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="relay raw protocol lines typed on stdin to the server",
    )
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="validate the configuration and exit",
    )
    parser.add_argument(
        "--reconnect-attempts",
        type=int,
        default=RECONNECT_ATTEMPTS,
        help="reconnect this many times after a connection failure (default: %(default)s)",
    )
    return parser


async def run_session(
    bot: ChatBot, *, console: bool = False, signals: SignalHandler | None = None
) -> None:
    """Connect ``bot`` and process lines until it stops or fails."""
    if signals is not None:
        signals.attach(bot)
    relay: asyncio.Task[None] | None = None
    try:
        await bot.connect()
        if console:
            relay = asyncio.create_task(relay_console(bot), name="console-relay")
        await bot.run()
    finally:
        if relay is not None:
            relay.cancel()
        await bot.close()


async def run_bot(
    config: BotConfig,
    *,
    console: bool = False,
    reconnect_attempts: int = 0,
    signals: SignalHandler | None = None,
) -> None:
    """Run sessions, reconnecting after connection failures when asked to.

    Raises:
        NetworkError: When the last allowed session fails.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(0, reconnect_attempts) + 1),
        wait=wait_exponential(multiplier=1, max=RECONNECT_MAX_DELAY),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            if signals is not None and signals.shutdown_initiated:
                return
            if attempt.retry_state.attempt_number > 1:
                logging.warning(
                    f"🔄 Reconnecting to {config.address} "
                    f"(attempt {attempt.retry_state.attempt_number - 1}/{reconnect_attempts})"
                )
            await run_session(ChatBot(config), console=console, signals=signals)


async def main(argv: Sequence[str] | None = None) -> int:
    """Load the configuration and run the bot.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        log_error("Configuration error", e)
        return 1
    if args.health_check:
        logging.info(
            f"✅ Health check passed - {config.nickname}@{config.address} "
            f"channels={len(config.channels)}"
        )
        return 0

    logging.info(f"🚀 Starting chanbot as {config.nickname} on {config.address}")
    signals = SignalHandler()
    signals.setup_signal_handlers()
    try:
        await run_bot(
            config,
            console=args.console,
            reconnect_attempts=args.reconnect_attempts,
            signals=signals,
        )
    except NetworkError as e:
        log_error("Connection lost", e)
        return 1
    finally:
        logging.info("✅ Application shutdown complete")
    return 0


def run() -> None:
    """Synchronous entry point for the application."""
    LoggerConfigurator().configure()
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    run()
