"""
Tests for the application entry point
"""

import io
import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from chanbot.console import relay_console
from chanbot.errors.internal import NetworkError
from chanbot.main import SignalHandler, build_parser, main, run_bot, run_session
from tests.fixtures.irc_fakes import SAMPLE_CONFIG


def _fake_bot(connect_effect=None, run_effect=None):
    bot = Mock()
    bot.connect = AsyncMock(side_effect=connect_effect)
    bot.run = AsyncMock(side_effect=run_effect)
    bot.close = AsyncMock()
    bot.stop = AsyncMock()
    bot.send_raw = AsyncMock()
    return bot


def test_build_parser_defaults():
    args = build_parser().parse_args([])
    assert args.config is None
    assert args.console is False
    assert args.health_check is False
    assert args.reconnect_attempts == 0


def test_build_parser_options():
    args = build_parser().parse_args(
        ["-c", "bot.json", "--console", "--health-check", "--reconnect-attempts", "3"]
    )
    assert args.config == "bot.json"
    assert args.console and args.health_check
    assert args.reconnect_attempts == 3


@pytest.mark.asyncio
async def test_health_check_passes_with_valid_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(SAMPLE_CONFIG), encoding="utf-8")
    assert await main(["--config", str(path), "--health-check"]) == 0


@pytest.mark.asyncio
async def test_missing_config_exits_with_error(tmp_path):
    assert await main(["--config", str(tmp_path / "missing.json"), "--health-check"]) == 1


@pytest.mark.asyncio
async def test_main_returns_error_code_on_connection_loss(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(SAMPLE_CONFIG), encoding="utf-8")
    with (
        patch.object(SignalHandler, "setup_signal_handlers"),
        patch("chanbot.main.run_bot", AsyncMock(side_effect=NetworkError("gone"))),
    ):
        assert await main(["--config", str(path)]) == 1


@pytest.mark.asyncio
async def test_main_returns_zero_after_clean_stop(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(SAMPLE_CONFIG), encoding="utf-8")
    runner = AsyncMock()
    with (
        patch.object(SignalHandler, "setup_signal_handlers"),
        patch("chanbot.main.run_bot", runner),
    ):
        assert await main(["--config", str(path), "--reconnect-attempts", "2"]) == 0
    assert runner.await_args.kwargs["reconnect_attempts"] == 2


@pytest.mark.asyncio
async def test_run_session_closes_bot_on_failure():
    bot = _fake_bot(run_effect=NetworkError("closed"))
    signals = SignalHandler()
    with pytest.raises(NetworkError):
        await run_session(bot, signals=signals)
    assert signals.bot is bot
    bot.connect.assert_awaited_once()
    bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_bot_without_reconnect_raises(bot_config):
    bot = _fake_bot(connect_effect=NetworkError("refused"))
    with patch("chanbot.main.ChatBot", Mock(return_value=bot)) as factory:
        with pytest.raises(NetworkError):
            await run_bot(bot_config, reconnect_attempts=0)
    assert factory.call_count == 1


@pytest.mark.asyncio
async def test_run_bot_reconnects_after_failure(bot_config, monkeypatch):
    monkeypatch.setattr("chanbot.main.RECONNECT_MAX_DELAY", 0.01)
    failing = _fake_bot(run_effect=NetworkError("closed by server"))
    healthy = _fake_bot()
    with patch("chanbot.main.ChatBot", Mock(side_effect=[failing, healthy])) as factory:
        await run_bot(bot_config, reconnect_attempts=2)
    assert factory.call_count == 2
    failing.close.assert_awaited_once()
    healthy.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_bot_skips_when_shutting_down(bot_config):
    signals = SignalHandler()
    signals.shutdown_initiated = True
    with patch("chanbot.main.ChatBot") as factory:
        await run_bot(bot_config, reconnect_attempts=3, signals=signals)
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_signal_handler_stops_bot_once():
    bot = _fake_bot()
    signals = SignalHandler()
    signals.attach(bot)
    signals.stop()
    signals.stop()
    await signals._stop_task
    assert signals.shutdown_initiated
    bot.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_console_relay_sends_non_empty_lines():
    bot = _fake_bot()
    await relay_console(bot, io.StringIO("PRIVMSG #go-nuts :hello\n\nJOIN #bots\n"))
    assert [c.args[0] for c in bot.send_raw.await_args_list] == [
        "PRIVMSG #go-nuts :hello",
        "JOIN #bots",
    ]


@pytest.mark.asyncio
async def test_console_relay_stops_on_closed_connection():
    bot = _fake_bot()
    bot.send_raw.side_effect = NetworkError("Connection is not open")
    await relay_console(bot, io.StringIO("NICK a\nNICK b\n"))
    bot.send_raw.assert_awaited_once_with("NICK a")


@pytest.mark.asyncio
async def test_console_relay_skips_rejected_lines():
    bot = _fake_bot()
    bot.send_raw.side_effect = [ValueError("bad line"), None]
    await relay_console(bot, io.StringIO("bad\nNICK b\n"))
    assert bot.send_raw.await_count == 2
