"""The bot: reacts to chat events and runs prefix commands."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from random import Random
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from . import commands
from .backup import SclunerBackup, decode_backup
from .commands import COMMAND_CHECKS, PREFIX, CommandRequest, _parse_u32, _parse_user_id, parse_command
from .models import SclunerGuild, SclunerInstance, SclunerMessage
from .mutators import _chance, maybe_mutate

logger = logging.getLogger(__name__)

MAX_CONTENT_BYTES = 2000
MAX_WORDS = 30
_SECONDS_PER_DAY = 86400


class ChatError(Exception):
    """A chat service request failed."""


@dataclass
class IncomingMessage:
    """A chat message as the bot sees it."""

    id: int
    channel_id: int
    author_id: int
    content: str
    guild_id: Optional[int] = None
    author_is_bot: bool = False
    mentions: Sequence[int] = ()
    mentions_bot: bool = False
    referenced: Optional["IncomingMessage"] = None
    attachments: Sequence[str] = ()
    timestamp: float = 0.0


class ChatClient(Protocol):
    """What the bot needs from a chat service; failures raise ChatError."""

    async def send_message(self, channel_id: int, content: str) -> int:
        """Post a message and return its id."""

    async def reply(self, channel_id: int, message_id: int, content: str) -> int:
        """Reply to a message and return the reply's id."""

    async def latest_message_id(self, channel_id: int) -> Optional[int]:
        """Return the id of the newest message in a channel."""

    async def guild_emojis(self, guild_id: int) -> list[str]:
        """Return the guild's custom emojis."""

    async def react(self, channel_id: int, message_id: int, emoji: str) -> None:
        """Add a reaction to a message."""

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        """Delete a message."""

    async def send_file(self, channel_id: int, filename: str, data: bytes) -> None:
        """Upload a file to a channel."""

    async def channel_history(self, channel_id: int) -> list[IncomingMessage]:
        """Return recent messages, newest first."""

    async def download_attachment(self, url: str) -> bytes:
        """Download an attachment."""

    async def start_typing(self, channel_id: int) -> None:
        """Show the typing indicator."""

    async def stop_typing(self, channel_id: int) -> None:
        """Hide the typing indicator."""


def _ascii_upper(text: str) -> str:
    return "".join(c.upper() if c.isascii() else c for c in text)


def _arg(args: Sequence[str], index: int) -> str:
    try:
        return args[index]
    except IndexError:
        raise ValueError(f"missing argument {index + 1}") from None


class SclunerBot:
    """Remembers whitelisted chatter and repeats it back at random."""

    def __init__(
        self,
        client: ChatClient,
        instance: SclunerInstance,
        rng: Optional[Random] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.instance = instance
        self.rng = rng if rng is not None else Random()
        self._sleep = sleep
        self._wall_clock = wall_clock
        self._lock = asyncio.Lock()

    async def on_ready(self, bot_name: str) -> bool:
        """Prune old backups and load the newest one; True if one was loaded."""
        logger.info("HEY %s!", _ascii_upper(bot_name))
        async with self._lock:
            channel = self.instance.backup_channel_id
            history = await self.client.channel_history(channel)
            if not history:
                logger.warning("No messages in backup channel!")
                return False

            if len(history) > 5:
                now = self._wall_clock()
                for old in history[4:]:
                    if int((old.timestamp - now) / _SECONDS_PER_DAY) > 2:
                        await self.client.delete_message(old.channel_id, old.id)

            latest = history[0]
            if not latest.attachments:
                logger.warning("Last message in backup channel didn't have a file!")
                return False

            data = await self.client.download_attachment(latest.attachments[0])
            self.instance.load_backup(decode_backup(data))
        logger.info("Loaded last backup!")
        return True

    async def on_message(self, message: IncomingMessage) -> None:
        if message.author_is_bot:
            return
        if message.content.startswith(PREFIX):
            await self.handle_command(message)
        if "/unscule" in message.content or PREFIX in message.content:
            return
        if message.guild_id is None:
            return

        async with self._lock:
            instance = self.instance
            if instance.backup_due():
                await self.save_backup()
                instance.backup_instant = instance.clock()

            whitelisted = message.author_id in instance.whitelist
            blacklisted = message.author_id in instance.blacklist
            guild = instance.ensure_guild(message.guild_id, self.rng)
            if guild.asleep:
                return

            await self.maybe_react_random(guild, message)

            if _chance(self.rng, guild.proc, guild.proc_out_of) or message.mentions_bot:
                await self.send_random(guild, message.channel_id)

            content = message.content
            if (
                not message.mentions
                and not blacklisted
                and whitelisted
                and content
                and len(content.encode("utf-8")) < MAX_CONTENT_BYTES
                and len(content.split()) < MAX_WORDS
            ):
                guild.remember(SclunerMessage(message.author_id, content), self.rng)

    async def save_backup(self) -> bool:
        """Upload a backup to the backup channel; True on success."""
        data = SclunerBackup.from_instance(self.instance).to_cbor()
        stamp = datetime.fromtimestamp(self._wall_clock(), timezone.utc)
        filename = stamp.isoformat().replace("+00:00", "Z") + ".cbor"
        try:
            await self.client.send_file(self.instance.backup_channel_id, filename, data)
        except ChatError as exc:
            logger.error("FAILED TO BACKUP : FILES COULDN'T BE SENT:%s", exc)
            return False
        logger.info("BACKUP SUCCESSFUL!")
        return True

    async def send_random(self, guild: SclunerGuild, channel_id: int) -> None:
        """Post one or more remembered messages, possibly mutated."""
        await self.client.start_typing(channel_id)
        try:
            last_id: Optional[int] = None
            keep_going = True
            while keep_going:
                keep_going = _chance(self.rng, 1, 4)
                if not guild.messages:
                    logger.error("FAILED TO SEND RANDOM RESPONSE: NO RECORDED MESSAGES")
                    return

                text = self.rng.choice(guild.messages).content
                emojis = await self.client.guild_emojis(guild.guild_id)
                text = maybe_mutate(text, guild, emojis, self.rng)

                await self._sleep(len(text.split()) / 10)

                left_behind = (
                    last_id is not None
                    and await self.client.latest_message_id(channel_id) != last_id
                )
                try:
                    if left_behind:
                        last_id = await self.client.reply(channel_id, last_id, text)
                    else:
                        last_id = await self.client.send_message(channel_id, text)
                except ChatError as exc:
                    logger.error("FAILED TO SEND RANDOM RESPONSE: %s", exc)
                    last_id = None
        finally:
            await self.client.stop_typing(channel_id)

    async def maybe_react_random(self, guild: SclunerGuild, message: IncomingMessage) -> None:
        """Occasionally react to a message with some of the guild's emojis."""
        emojis = await self.client.guild_emojis(guild.guild_id)
        keep_going = _chance(self.rng, 1, 8)
        while keep_going:
            keep_going = _chance(self.rng, 1, 4)
            if not emojis:
                return
            emote = self.rng.choice(emojis)
            try:
                await self.client.react(message.channel_id, message.id, emote)
            except ChatError as exc:
                logger.error("FAILED TO REACT: %s", exc)

    async def handle_command(self, message: IncomingMessage) -> Optional[str]:
        """Run a prefixed command and post its reply; returns the reply."""
        request = parse_command(message.content)
        if request is None or message.guild_id is None:
            return None
        check = COMMAND_CHECKS.get(request.name)
        if check is None:
            logger.info("Unknown command: %s", request.name)
            return None

        async with self._lock:
            if not check(self.instance, message.author_id):
                logger.info(
                    "A command check failed in command %s for user %s",
                    request.name,
                    message.author_id,
                )
                return None
            try:
                reply = await self._run_command(request, message)
            except KeyError as exc:
                logger.error("Command %s failed: unknown guild %s", request.name, exc)
                return None
            except ValueError as exc:
                logger.error("Command %s: bad argument: %s", request.name, exc)
                return None

        if reply is not None:
            await self.client.send_message(message.channel_id, reply)
        return reply

    async def _run_command(
        self, request: CommandRequest, message: IncomingMessage
    ) -> Optional[str]:
        instance = self.instance
        guild_id = message.guild_id
        args = request.args
        referenced = message.referenced

        match request.name:
            case "delete_content":
                if referenced is not None:
                    await self.client.delete_message(referenced.channel_id, referenced.id)
                return commands.delete_content(
                    instance, guild_id, referenced.content if referenced else None
                )
            case "info_content":
                return commands.info_content(
                    instance, guild_id, referenced.content if referenced else None
                )
            case "info_proc":
                return commands.info_proc(instance, guild_id)
            case "info":
                return commands.info(instance, guild_id)
            case "whitelist":
                return commands.whitelist(instance, message.author_id)
            case "delete_user":
                return commands.delete_user(instance, guild_id, _parse_user_id(_arg(args, 0)))
            case "proc":
                return commands.proc(
                    instance,
                    guild_id,
                    _parse_u32(_arg(args, 0)),
                    _parse_u32(_arg(args, 1)),
                    _parse_u32(_arg(args, 2)),
                )
            case "sleep":
                return commands.sleep(instance, guild_id)
            case "moderator":
                return commands.moderator(instance, _parse_user_id(_arg(args, 0)))
            case "backup_send":
                await self.save_backup()
                return "SUCCESSFULLY SENT BACKUP TO CHANNEL"
            case "backup_load" | "backup_load_compat":
                if not message.attachments:
                    raise ValueError("missing attachment")
                try:
                    data = await self.client.download_attachment(message.attachments[0])
                except ChatError as exc:
                    return f"FILE COULDN'T BE DOWNLOADED: {exc}"
                if request.name == "backup_load":
                    return commands.backup_load(instance, data)
                return commands.backup_load_compat(instance, data)
        return None