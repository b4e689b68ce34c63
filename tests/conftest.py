import pytest

from chanbot.config.model import BotConfig
from tests.fixtures.irc_fakes import SAMPLE_CONFIG, RecordingWriter


@pytest.fixture
def bot_config() -> BotConfig:
    return BotConfig.from_dict(SAMPLE_CONFIG)


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()
