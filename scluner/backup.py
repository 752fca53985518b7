"""CBOR backups of the bot's state, with support for the previous layout."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable

import cbor2

from .models import (
    SclunerGuild,
    SclunerInstance,
    SclunerMessage,
    _decode_bool,
    _decode_list,
    _decode_snowflake,
    _decode_u32,
    _field,
)
from .mutators import DefinedMutators


class BackupError(ValueError):
    """A backup could not be decoded."""


def _load(data: bytes) -> Any:
    try:
        return cbor2.loads(data)
    except (ValueError, TypeError, EOFError) as exc:
        raise BackupError(f"invalid CBOR: {exc}") from exc


def _decode_parts(decoded: Any, parse_guild: Callable[[Any], Any]) -> dict:
    try:
        return {
            "guilds_keys": [_decode_snowflake(k) for k in _decode_list(decoded, "guilds_keys")],
            "guilds_values": [parse_guild(g) for g in _decode_list(decoded, "guilds_values")],
            "whitelist": [_decode_snowflake(u) for u in _decode_list(decoded, "whitelist")],
            "blacklist": [_decode_snowflake(u) for u in _decode_list(decoded, "blacklist")],
            "modlist": [_decode_snowflake(u) for u in _decode_list(decoded, "modlist")],
        }
    except (ValueError, TypeError) as exc:
        raise BackupError(str(exc)) from exc


@dataclass
class SclunerBackup:
    """A snapshot of every guild and the user lists."""

    guilds_keys: list[int] = field(default_factory=list)
    guilds_values: list[SclunerGuild] = field(default_factory=list)
    whitelist: list[int] = field(default_factory=list)
    blacklist: list[int] = field(default_factory=list)
    modlist: list[int] = field(default_factory=list)

    @classmethod
    def from_instance(cls, instance: SclunerInstance) -> "SclunerBackup":
        return cls(
            guilds_keys=list(instance.guilds.keys()),
            guilds_values=[copy.deepcopy(g) for g in instance.guilds.values()],
            whitelist=list(instance.whitelist),
            blacklist=list(instance.blacklist),
            modlist=list(instance.modlist),
        )

    def to_cbor(self) -> bytes:
        return cbor2.dumps(
            {
                "guilds_keys": list(self.guilds_keys),
                "guilds_values": [g.to_dict() for g in self.guilds_values],
                "whitelist": list(self.whitelist),
                "blacklist": list(self.blacklist),
                "modlist": list(self.modlist),
            }
        )

    @classmethod
    def from_cbor(cls, data: bytes) -> "SclunerBackup":
        return cls(**_decode_parts(_load(data), SclunerGuild.from_dict))


@dataclass
class SclunerGuildCompat:
    """A guild as stored before mutators could be configured."""

    guild_id: int
    messages: list[SclunerMessage]
    asleep: bool
    min_proc: int
    max_proc: int
    proc_out_of: int
    proc: int

    @classmethod
    def _from_dict(cls, data: Any) -> "SclunerGuildCompat":
        return cls(
            guild_id=_decode_snowflake(_field(data, "guild_id")),
            messages=[SclunerMessage.from_dict(m) for m in _decode_list(data, "messages")],
            asleep=_decode_bool(data, "asleep"),
            min_proc=_decode_u32(data, "min_proc"),
            max_proc=_decode_u32(data, "max_proc"),
            proc_out_of=_decode_u32(data, "proc_out_of"),
            proc=_decode_u32(data, "proc"),
        )

    def modernise(self) -> SclunerGuild:
        return SclunerGuild(
            guild_id=self.guild_id,
            messages=list(self.messages),
            asleep=self.asleep,
            allowed_mutators=DefinedMutators.default_allowed(),
            min_proc=self.min_proc,
            max_proc=self.max_proc,
            proc_out_of=self.proc_out_of,
            proc=self.proc,
        )


@dataclass
class SclunerBackupCompat:
    """A backup in the previous layout."""

    guilds_keys: list[int] = field(default_factory=list)
    guilds_values: list[SclunerGuildCompat] = field(default_factory=list)
    whitelist: list[int] = field(default_factory=list)
    blacklist: list[int] = field(default_factory=list)
    modlist: list[int] = field(default_factory=list)

    def modernise(self) -> SclunerBackup:
        return SclunerBackup(
            guilds_keys=list(self.guilds_keys),
            guilds_values=[g.modernise() for g in self.guilds_values],
            whitelist=list(self.whitelist),
            blacklist=list(self.blacklist),
            modlist=list(self.modlist),
        )

    @classmethod
    def from_cbor(cls, data: bytes) -> "SclunerBackupCompat":
        return cls(**_decode_parts(_load(data), SclunerGuildCompat._from_dict))


def decode_backup(data: bytes) -> SclunerBackup:
    """Decode a backup, falling back to the previous layout."""
    try:
        return SclunerBackup.from_cbor(data)
    except BackupError as original:
        try:
            return SclunerBackupCompat.from_cbor(data).modernise()
        except BackupError as compat:
            raise BackupError(
                f"original error: {original}, compat error: {compat}"
            ) from compat