import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from chanbot.config.model import BotConfig
from chanbot.errors.internal import ConnectionClosedError, NetworkError
from chanbot.irc.client import ChatBot
from chanbot.irc.connection import IRCConnection
from tests.fixtures.irc_fakes import SAMPLE_CONFIG, FakeStreamWriter, wait_until


def _attached_bot(config: BotConfig, writer: FakeStreamWriter | None = None, **kwargs):
    conn = IRCConnection(config)
    reader = asyncio.StreamReader()
    writer = writer or FakeStreamWriter()
    conn.attach(reader, writer)
    bot = ChatBot(config, connection=conn, **kwargs)
    return bot, reader, writer


@pytest.mark.asyncio
async def test_builtins_installed_by_default(bot_config):
    bot = ChatBot(bot_config)
    assert bot.dispatcher.names() == [".g", ".gv", ".usage"]
    bare = ChatBot(bot_config, install_builtins=False)
    assert bare.dispatcher.names() == []
    assert bare.builtins is None


@pytest.mark.asyncio
async def test_run_requires_open_connection(bot_config):
    bot = ChatBot(bot_config)
    with pytest.raises(NetworkError):
        await bot.run()


@pytest.mark.asyncio
async def test_run_answers_ping_until_stopped(bot_config):
    bot, reader, writer = _attached_bot(bot_config)
    task = asyncio.create_task(bot.run())
    reader.feed_data(b"PING :abc123\r\n")
    await wait_until(lambda: "PONG abc123" in writer.lines)
    assert bot.running
    await bot.stop()
    await asyncio.wait_for(task, timeout=2)
    assert not bot.running
    assert bot.lines_received == 1
    assert writer.closed


@pytest.mark.asyncio
async def test_run_routes_commands_and_greetings(bot_config):
    bot, reader, writer = _attached_bot(bot_config)
    task = asyncio.create_task(bot.run())
    reader.feed_data(
        b":Pent!~pent@host JOIN #go-nuts\r\n"
        b":Pent!~pent@host PRIVMSG #go-nuts :hi BotName, how are you?\r\n"
        b":Pent!~pent@host PRIVMSG #go-nuts :.bogus\r\n"
    )
    await wait_until(lambda: len(writer.lines) == 3)
    await bot.stop()
    await task
    assert sorted(writer.lines) == sorted(
        [
            "MODE #go-nuts +o Pent",
            "PRIVMSG #go-nuts :Hi there Pent",
            "PRIVMSG #go-nuts :Commands: .g, .gv, .usage",
        ]
    )


@pytest.mark.asyncio
async def test_failed_command_reported_to_channel(bot_config):
    bot, reader, writer = _attached_bot(bot_config)
    bot.dispatcher.register(".boom", AsyncMock(side_effect=RuntimeError("kaput")))
    task = asyncio.create_task(bot.run())
    reader.feed_data(b":Pent!u@h PRIVMSG #go-nuts :.boom\r\n")
    await wait_until(lambda: writer.lines == ["PRIVMSG #go-nuts :Command .boom failed"])
    await bot.stop()
    await task


@pytest.mark.asyncio
async def test_failed_command_silent_when_reporting_disabled():
    config = BotConfig.from_dict({**SAMPLE_CONFIG, "report_command_errors": False})
    bot, reader, writer = _attached_bot(config)
    handler = AsyncMock(side_effect=RuntimeError("kaput"))
    bot.dispatcher.register(".boom", handler)
    task = asyncio.create_task(bot.run())
    reader.feed_data(b":Pent!u@h PRIVMSG #go-nuts :.boom\r\n")
    await wait_until(lambda: handler.await_count == 1)
    await bot.stop()
    await task
    assert writer.lines == []


@pytest.mark.asyncio
async def test_server_eof_raises_network_error(bot_config):
    bot, reader, _ = _attached_bot(bot_config)
    reader.feed_eof()
    with pytest.raises(ConnectionClosedError, match="closed by irc.example.net:6667"):
        await asyncio.wait_for(bot.run(), timeout=2)
    await bot.close()


@pytest.mark.asyncio
async def test_read_failure_raises_network_error(bot_config):
    bot, reader, _ = _attached_bot(bot_config)
    reader.set_exception(ConnectionResetError("reset by peer"))
    with pytest.raises(NetworkError, match="Read from"):
        await asyncio.wait_for(bot.run(), timeout=2)
    await bot.close()


@pytest.mark.asyncio
async def test_write_failure_ends_run(bot_config):
    bot, reader, _ = _attached_bot(bot_config, FakeStreamWriter(fail_on_write=True))
    task = asyncio.create_task(bot.run())
    reader.feed_data(b"PING :abc123\r\n")
    with pytest.raises(NetworkError, match="Write to"):
        await asyncio.wait_for(task, timeout=2)
    await bot.close()


@pytest.mark.asyncio
async def test_worker_pool_bounds_concurrency():
    config = BotConfig.from_dict({**SAMPLE_CONFIG, "max_concurrent_lines": 2})
    release = asyncio.Event()
    active = 0
    peak = 0
    done: list[str | None] = []

    async def slow_chatter(message, channel):  # noqa: ARG001
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await release.wait()
        active -= 1
        done.append(message)

    bot, reader, _ = _attached_bot(config, chatter=slow_chatter)
    task = asyncio.create_task(bot.run())
    reader.feed_data(b"".join(f":u!u@h PRIVMSG #go-nuts :line {i}\r\n".encode() for i in range(5)))
    await wait_until(lambda: active == 2)
    await asyncio.sleep(0.05)
    assert peak == 2
    release.set()
    await wait_until(lambda: len(done) == 5)
    assert peak == 2
    await bot.stop()
    await task


@pytest.mark.asyncio
async def test_ping_answered_while_all_workers_busy():
    config = BotConfig.from_dict({**SAMPLE_CONFIG, "max_concurrent_lines": 2})
    release = asyncio.Event()
    bot, reader, writer = _attached_bot(config)
    started: list[str] = []

    async def slow(args, channel):  # noqa: ARG001
        started.append(args)
        await release.wait()

    bot.dispatcher.register(".slow", slow)
    task = asyncio.create_task(bot.run())
    reader.feed_data(
        b":Pent!u@h PRIVMSG #go-nuts :.slow one\r\n"
        b":Pent!u@h PRIVMSG #go-nuts :.slow two\r\n"
    )
    await wait_until(lambda: len(started) == 2)
    reader.feed_data(b"PING :abc123\r\n")
    await wait_until(lambda: writer.lines == ["PONG abc123"])
    assert bot.router.ping_responder.last_ping_from_server > 0
    release.set()
    await bot.stop()
    await task


@pytest.mark.asyncio
async def test_stop_is_idempotent(bot_config):
    bot, _, writer = _attached_bot(bot_config)
    task = asyncio.create_task(bot.run())
    await asyncio.sleep(0)
    await bot.stop()
    await bot.stop()
    await task
    assert writer.closed


@pytest.mark.asyncio
async def test_send_message_skips_empty_and_splits_lines(bot_config):
    conn = Mock()
    conn.write_line = AsyncMock()
    bot = ChatBot(bot_config, connection=conn, install_builtins=False)
    await bot.send_message("", "#go-nuts")
    conn.write_line.assert_not_awaited()
    await bot.send_message("first\nsecond\n\nthird", "#go-nuts")
    assert [c.args[0] for c in conn.write_line.await_args_list] == [
        "PRIVMSG #go-nuts :first",
        "PRIVMSG #go-nuts :second",
        "PRIVMSG #go-nuts :third",
    ]


@pytest.mark.asyncio
async def test_send_command_and_raw(bot_config):
    conn = Mock()
    conn.write_line = AsyncMock()
    bot = ChatBot(bot_config, connection=conn, install_builtins=False)
    await bot.send_command("MODE", "#go-nuts", "+o", "Pent")
    await bot.send_raw("NAMES #go-nuts")
    assert [c.args[0] for c in conn.write_line.await_args_list] == [
        "MODE #go-nuts +o Pent",
        "NAMES #go-nuts",
    ]


@pytest.mark.asyncio
async def test_health_snapshot(bot_config):
    bot, reader, _ = _attached_bot(bot_config)
    snapshot = bot.get_health_snapshot()
    assert snapshot["nickname"] == "BotName"
    assert snapshot["server"] == "irc.example.net:6667"
    assert snapshot["state"] == "REGISTERING"
    assert snapshot["connected"] is False
    assert snapshot["time_since_activity"] is None
    assert snapshot["time_since_ping"] is None

    task = asyncio.create_task(bot.run())
    reader.feed_data(b"PING :abc\r\n")
    await wait_until(lambda: bot.get_health_snapshot()["time_since_ping"] is not None)
    snapshot = bot.get_health_snapshot()
    assert snapshot["running"] is True
    assert snapshot["lines_received"] == 1
    assert snapshot["time_since_activity"] >= 0
    await bot.stop()
    await task
    assert bot.get_health_snapshot()["state"] == "CLOSED"
