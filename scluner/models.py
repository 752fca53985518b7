"""Remembered messages, per-guild state and the bot's shared state."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from random import Random
from typing import Any, Callable, Protocol, Sequence

from .mutators import DefinedMutators

logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 2222
EVICTION_FLOOR = 1000
BACKUP_INTERVAL = 43200  # seconds between automatic backups
_U32_MAX = 0xFFFFFFFF


def _field(data: Any, key: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a map, found {type(data).__name__}")
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _decode_snowflake(value: Any) -> int:
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 2**64:
        raise ValueError(f"invalid id: {value!r}")
    return value


def _decode_list(data: Any, key: str) -> list:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"field `{key}` is not a sequence")
    return value


def _decode_u32(data: Any, key: str) -> int:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"field `{key}` is not a u32: {value!r}")
    return value


def _decode_bool(data: Any, key: str) -> bool:
    value = _field(data, key)
    if not isinstance(value, bool):
        raise ValueError(f"field `{key}` is not a boolean")
    return value


def _decode_text(data: Any, key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` is not a string")
    return value


@dataclass
class SclunerMessage:
    """A remembered message and who sent it."""

    user_id: int
    content: str

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "content": self.content}

    @classmethod
    def from_dict(cls, data: Any) -> "SclunerMessage":
        return cls(
            user_id=_decode_snowflake(_field(data, "user_id")),
            content=_decode_text(data, "content"),
        )


@dataclass
class SclunerGuild:
    """Memories and settings for one guild."""

    guild_id: int
    messages: list[SclunerMessage] = field(default_factory=list)
    asleep: bool = False
    allowed_mutators: list[DefinedMutators] = field(
        default_factory=DefinedMutators.default_allowed
    )
    min_proc: int = 1
    max_proc: int = 4
    proc_out_of: int = 18
    proc: int = 1

    @classmethod
    def create(cls, guild_id: int, rng: Random) -> "SclunerGuild":
        """Register a new guild with default settings and a random proc."""
        logger.info("NEW GUILD REGISTERED: %s", guild_id)
        return cls(guild_id=guild_id, proc=rng.randrange(1, 4))

    def fetch_from_content(self, content: str) -> list[SclunerMessage]:
        return [m for m in self.messages if content in m.content]

    def delete_message_sender(self, user_id: int) -> None:
        self.messages = [m for m in self.messages if m.user_id != user_id]

    def delete_message_content(self, content: str) -> None:
        self.messages = [m for m in self.messages if content not in m.content]

    def remember(self, message: SclunerMessage, rng: Random) -> None:
        """Store a message, evicting a random newer one past the limit."""
        self.messages.append(message)
        if len(self.messages) > MESSAGE_LIMIT:
            index = rng.randint(EVICTION_FLOOR, MESSAGE_LIMIT)
            last = self.messages.pop()
            if index < len(self.messages):
                self.messages[index] = last

    def to_dict(self) -> dict:
        return {
            "guild_id": self.guild_id,
            "messages": [m.to_dict() for m in self.messages],
            "asleep": self.asleep,
            "allowed_mutators": [m.value for m in self.allowed_mutators],
            "min_proc": self.min_proc,
            "max_proc": self.max_proc,
            "proc_out_of": self.proc_out_of,
            "proc": self.proc,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SclunerGuild":
        return cls(
            guild_id=_decode_snowflake(_field(data, "guild_id")),
            messages=[SclunerMessage.from_dict(m) for m in _decode_list(data, "messages")],
            asleep=_decode_bool(data, "asleep"),
            allowed_mutators=[
                DefinedMutators(m) for m in _decode_list(data, "allowed_mutators")
            ],
            min_proc=_decode_u32(data, "min_proc"),
            max_proc=_decode_u32(data, "max_proc"),
            proc_out_of=_decode_u32(data, "proc_out_of"),
            proc=_decode_u32(data, "proc"),
        )


class _BackupLike(Protocol):
    guilds_keys: Sequence[int]
    guilds_values: Sequence[SclunerGuild]
    whitelist: Sequence[int]
    blacklist: Sequence[int]
    modlist: Sequence[int]


@dataclass
class SclunerInstance:
    """State shared by the whole bot."""

    backup_channel_id: int
    guilds: dict[int, SclunerGuild] = field(default_factory=dict)
    whitelist: list[int] = field(default_factory=list)
    blacklist: list[int] = field(default_factory=list)
    modlist: list[int] = field(default_factory=list)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)
    startup_instant: float = field(init=False)
    backup_instant: float = field(init=False)

    def __post_init__(self) -> None:
        now = self.clock()
        self.startup_instant = now
        self.backup_instant = now

    def guild(self, guild_id: int) -> SclunerGuild:
        """Return a registered guild; KeyError if it is unknown."""
        return self.guilds[guild_id]

    def ensure_guild(self, guild_id: int, rng: Random) -> SclunerGuild:
        if guild_id not in self.guilds:
            self.guilds[guild_id] = SclunerGuild.create(guild_id, rng)
        return self.guilds[guild_id]

    def load_backup(self, backup: _BackupLike) -> None:
        self.backup_instant = self.clock()
        self.guilds = dict(zip(backup.guilds_keys, backup.guilds_values))
        self.whitelist = list(backup.whitelist)
        self.blacklist = list(backup.blacklist)
        self.modlist = list(backup.modlist)

    def backup_due(self) -> bool:
        return self.clock() - self.backup_instant >= BACKUP_INTERVAL