from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import COMMAND_PREFIX, DEFAULT_IRC_PORT, MAX_CONCURRENT_LINES, SEARCH_URL


def _normalize_channels(channels: Any) -> tuple[str, ...]:
    """Normalize a list of channel names.

    Strips whitespace, adds a leading '#' to bare names (names already using
    another channel sigil such as '&' are kept), and removes duplicates while
    keeping the configured join order.
    """
    if isinstance(channels, str):
        channels = [channels]
    if not isinstance(channels, list | tuple):
        raise ValueError("channels must be a list")
    normalized: list[str] = []
    for ch in channels:
        if not isinstance(ch, str):
            continue
        stripped = ch.strip()
        if not stripped:
            continue
        if " " in stripped or "," in stripped:
            raise ValueError(f"invalid channel name: {stripped!r}")
        if stripped[0] not in "#&+!":
            stripped = f"#{stripped}"
        normalized.append(stripped)
    return tuple(dict.fromkeys(normalized))


class BotConfig(BaseModel):
    """Immutable bot configuration shared by every component.

    Attributes:
        server: IRC server hostname.
        port: IRC server TCP port.
        nickname: The bot's nickname (also used as its USER name).
        channels: Channels joined right after registration.
        trusted_identity: Nickname granted operator status when it joins.
        command_prefix: Character marking a chat message as a command.
        max_concurrent_lines: Size of the line routing worker pool.
        report_command_errors: Whether failed commands are reported in chat.
        search_url: Endpoint of the web search API used by the search command.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    server: str = Field(min_length=1)
    port: int = Field(default=DEFAULT_IRC_PORT, ge=1, le=65535)
    nickname: str = Field(min_length=1, max_length=32)
    channels: tuple[str, ...] = Field(default_factory=tuple)
    trusted_identity: str | None = None
    command_prefix: str = Field(default=COMMAND_PREFIX, min_length=1, max_length=1)
    max_concurrent_lines: int = Field(default=MAX_CONCURRENT_LINES, ge=1)
    report_command_errors: bool = True
    search_url: str = SEARCH_URL

    @field_validator("server", mode="before")
    @classmethod
    def validate_server(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("nickname")
    @classmethod
    def validate_nickname(cls, v: str) -> str:
        v = v.strip()
        if not v or any(c in v for c in " ,!@:"):
            raise ValueError(f"invalid nickname: {v!r}")
        return v

    @field_validator("channels", mode="before")
    @classmethod
    def validate_channels(cls, v: Any) -> tuple[str, ...]:
        return _normalize_channels(v)

    @field_validator("trusted_identity", mode="before")
    @classmethod
    def validate_trusted_identity(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("command_prefix")
    @classmethod
    def validate_command_prefix(cls, v: str) -> str:
        if v.isspace():
            raise ValueError("command_prefix must not be whitespace")
        return v

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BotConfig:
        """Create a BotConfig from a dictionary.

        Accepts the port as a string, the way JSON config files written
        for the bot usually carry it.
        """
        norm_data = dict(data)
        port = norm_data.get("port")
        if isinstance(port, str) and port.strip().isdigit():
            norm_data["port"] = int(port.strip())
        return cls.model_validate(norm_data)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["channels"] = list(self.channels)
        return data

    @property
    def address(self) -> str:
        return f"{self.server}:{self.port}"
