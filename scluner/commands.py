"""Prefix commands: permission checks and the work each command does."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .backup import BackupError, SclunerBackup, SclunerBackupCompat
from .models import SclunerInstance

PREFIX = "::SCL_"
DEV_ID = 407991620164911118
VERSION = "3.0.0"

_U32_MAX = 0xFFFFFFFF
_MENTION = re.compile(r"<@!?(\d+)>")
_UNSIGNED = re.compile(r"\+?\d+")


@dataclass(frozen=True)
class CommandRequest:
    """A command name and its whitespace-separated arguments."""

    name: str
    args: tuple[str, ...] = ()


def parse_command(content: str) -> Optional[CommandRequest]:
    """Parse a prefixed command, or return None when the text is not one."""
    if not content.startswith(PREFIX):
        return None
    parts = content[len(PREFIX):].split()
    if not parts:
        return None
    return CommandRequest(parts[0], tuple(parts[1:]))


def _parse_user_id(text: str) -> int:
    """Read a user from a mention or a bare id."""
    match = _MENTION.fullmatch(text)
    digits = match.group(1) if match else text
    if not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"not a user: {text!r}")
    user_id = int(digits)
    if not 0 < user_id < 2**64:
        raise ValueError(f"not a user: {text!r}")
    return user_id


def _parse_u32(text: str) -> int:
    if not (text.isascii() and _UNSIGNED.fullmatch(text)):
        raise ValueError(f"not an unsigned number: {text!r}")
    value = int(text)
    if value > _U32_MAX:
        raise ValueError(f"number too large: {text!r}")
    return value


# Checks

def dev_check(instance: SclunerInstance, author_id: int) -> bool:
    return author_id == DEV_ID


def mod_check(instance: SclunerInstance, author_id: int) -> bool:
    return author_id == DEV_ID or (
        author_id in instance.modlist and author_id not in instance.blacklist
    )


def user_check(instance: SclunerInstance, author_id: int) -> bool:
    return author_id not in instance.blacklist


# User commands

def delete_content(
    instance: SclunerInstance, guild_id: int, referenced_content: Optional[str]
) -> str:
    """Forget every memory that contains the replied-to message's content."""
    if referenced_content is None:
        return "PLEASE REPLY TO MESSAGE TO DELETE"
    instance.guild(guild_id).delete_message_content(referenced_content)
    return "DELETED ALL MESSAGES WITH CONTENT"


def info_content(
    instance: SclunerInstance, guild_id: int, referenced_content: Optional[str]
) -> str:
    """List the users whose memories contain the replied-to content."""
    if referenced_content is None:
        return "PLEASE REPLY TO A SCLUNER MESSAGE TO USE AS CONTENT"
    guild = instance.guild(guild_id)
    lines = "".join(
        f"<@{m.user_id}>\n" for m in guild.fetch_from_content(referenced_content)
    )
    return "MESSAGE ORIGINALLY SENT BY USERS:\n" + lines


def info_proc(instance: SclunerInstance, guild_id: int) -> str:
    guild = instance.guild(guild_id)
    return (
        f"MIN_PROC:{guild.min_proc}\n"
        f"MAX_PROC:{guild.max_proc}\n"
        f"PROC_OUT_OF:{guild.proc_out_of}\n"
        f"CHANCE OF RANDOM REPLY: [{guild.min_proc}..{guild.max_proc}] "
        f"out of {guild.proc_out_of} tries"
    )


def info(instance: SclunerInstance, guild_id: int) -> str:
    now = instance.clock()
    running_hours = int((now - instance.startup_instant) // 3600)
    backup_hours = int((now - instance.backup_instant) // 3600)
    guild = instance.guild(guild_id)
    return (
        f"SCLUNER v{VERSION}\n"
        f"RUNNING FOR: {running_hours}h\n"
        f"TIME SINCE BACKUP: {backup_hours}h\n"
        f"ON {len(instance.guilds)} GUILDS\n"
        f"STORING {len(guild.messages)} MESSAGES ON CURRENT ONE"
    )


def whitelist(instance: SclunerInstance, user_id: int) -> str:
    """Toggle whether the user's messages may be remembered."""
    if user_id in instance.whitelist:
        instance.whitelist = [u for u in instance.whitelist if u != user_id]
        return f"REMOVED USER <@{user_id}>"
    instance.whitelist.append(user_id)
    return f"ADDED USER <@{user_id}>"


# Moderator commands

def delete_user(instance: SclunerInstance, guild_id: int, user_id: int) -> str:
    instance.guild(guild_id).delete_message_sender(user_id)
    return f"DELETED ALL MESSAGES SENT BY <@{user_id}>"


def proc(
    instance: SclunerInstance, guild_id: int, min_proc: int, max_proc: int, out_of: int
) -> str:
    guild = instance.guild(guild_id)
    guild.min_proc = min_proc
    guild.max_proc = max_proc
    guild.proc_out_of = out_of
    return "SUCCESSFULLY SET PROC VARS"


def sleep(instance: SclunerInstance, guild_id: int) -> str:
    """Mute or unmute the bot in a guild."""
    guild = instance.guild(guild_id)
    guild.asleep = not guild.asleep
    return "A mimir" if guild.asleep else "Good morning!"


# Developer commands

def moderator(instance: SclunerInstance, user_id: int) -> str:
    """Toggle the user's moderator rights."""
    if user_id in instance.modlist:
        instance.modlist = [u for u in instance.modlist if u != user_id]
        return f"REMOVED MODERATOR <@{user_id}>"
    instance.modlist.append(user_id)
    return f"ADDED MODERATOR <@{user_id}>"


def backup_load(instance: SclunerInstance, data: bytes) -> str:
    try:
        backup = SclunerBackup.from_cbor(data)
    except BackupError as exc:
        return f"FILE COULDN'T BE DESERIALIZED: {exc}"
    instance.load_backup(backup)
    return "SUCCESSFULLY LOADED BACKUP"


def backup_load_compat(instance: SclunerInstance, data: bytes) -> str:
    try:
        backup = SclunerBackupCompat.from_cbor(data)
    except BackupError as exc:
        return f"FILE COULDN'T BE DESERIALIZED: {exc}"
    instance.load_backup(backup.modernise())
    return "SUCCESSFULLY COMPAT LOADED BACKUP"


COMMAND_CHECKS: dict[str, Callable[[SclunerInstance, int], bool]] = {
    "delete_content": user_check,
    "info_content": user_check,
    "info_proc": user_check,
    "info": user_check,
    "whitelist": user_check,
    "delete_user": mod_check,
    "proc": mod_check,
    "sleep": mod_check,
    "moderator": dev_check,
    "backup_send": dev_check,
    "backup_load": dev_check,
    "backup_load_compat": dev_check,
}