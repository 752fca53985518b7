# scluner

`scluner` is the core of a playful chat bot. It remembers short messages
from users who have opted in. Every so often it answers with one of those
messages, and it may change the message a little before sending it: it can
add an emote, splice two messages together, or drop some pronouns. It also
reacts to messages with random guild emotes. Its whole memory is kept in CBOR
backups that it can load again later.

## Modules

- `scluner.models` holds the bot's state:
  - `SclunerMessage` is the author's id and the text.
  - `SclunerGuild` is one guild's memory, its sleep flag, its allowed
    mutators and its reply settings.
  - `SclunerInstance` holds every guild, the whitelist, the blacklist and the
    moderator list.
- `scluner.mutators` holds the mutators and the function that applies them:
  - `AppendEmote`, `MessageSplicer` and `Misgendering` are the mutators.
  - The `DefinedMutators` enum names the mutators.
  - `maybe_mutate` runs a guild's allowed mutators in a random order.
- `scluner.backup` reads and writes backups:
  - `SclunerBackup` writes a snapshot to CBOR and reads it back.
  - `SclunerBackupCompat` reads the previous layout and `modernise()`s it.
  - `decode_backup` tries the current layout first, then the previous one.
    If both fail it raises `BackupError`.
- `scluner.commands` holds the command layer:
  - `parse_command` turns `::SCL_...` text into a `CommandRequest`.
  - `dev_check`, `mod_check` and `user_check` are the permission checks.
  - There is one function per command. Each one changes a `SclunerInstance`
    and returns the reply text.
- `scluner.bot` holds `SclunerBot`, which runs the event logic on top of any
  object that provides the `ChatClient` protocol:
  - `on_ready` loads the newest backup from the backup channel.
  - `on_message` handles incoming messages.
  - `handle_command` runs commands.
  - `send_random` and `maybe_react_random` make the random replies and
    reactions.
  - `save_backup` writes a backup. A backup is also written automatically
    once twelve hours have passed since the last one.

## Remembering and replaying

```python
import random

from scluner.models import SclunerGuild, SclunerMessage
from scluner.mutators import maybe_mutate

rng = random.Random()
guild = SclunerGuild.create(1234, rng)
guild.remember(SclunerMessage(user_id=42, content="they said hello"), rng)

print([m.user_id for m in guild.fetch_from_content("hello")])
print(maybe_mutate("they said hello", guild, ["<:wave:1>"], rng))
```

A new guild gets these settings:

- `proc` is a random number from 1 to 3.
- `proc_out_of` is 18.
- All three mutators are allowed.

On each message the bot replies with a chance of `proc` in `proc_out_of`, and
it always replies when it is mentioned. A reply may chain into further
replies, each with a chance of one in four.

Each mutator acts only part of the time:

- `AppendEmote` adds one of the given emojis, with a chance of 1 in 16.
- `MessageSplicer` joins the text with another remembered message, with a
  chance of 1 in 16.
- `Misgendering` acts with a chance of 1 in 9. It removes each pronoun word
  with a chance of 1 in 3.

A guild keeps at most 2222 messages. When a new message pushes it past that
limit, the newest message takes the place of a randomly chosen message at
position 1000 or later.

The bot only remembers a message when all of these hold:

- The author is whitelisted and is not blacklisted.
- The message mentions no one.
- The message is not empty.
- The message is under 2000 bytes and has fewer than 30 words.

It ignores these messages entirely:

- messages from bots;
- messages outside a guild;
- messages containing `/unscule` or `::SCL_`;
- every message in a guild that is asleep.

## Backups

```python
from scluner.backup import SclunerBackup, decode_backup
from scluner.models import SclunerInstance

instance = SclunerInstance(backup_channel_id=1)
payload = SclunerBackup.from_instance(instance).to_cbor()
instance.load_backup(decode_backup(payload))
```

Backups in the previous layout had no per-guild mutator list. They still
load, and each guild is given the default mutators.

## Commands

A command is a message that starts with `::SCL_`, followed by the command
name and its arguments separated by whitespace:

| Command | Check | Effect |
| --- | --- | --- |
| `delete_content` | `user_check` | delete the replied-to message and forget every memory containing its text |
| `info_content` | `user_check` | list who sent memories containing the replied-to text |
| `info_proc` | `user_check` | show `min_proc`, `max_proc` and `proc_out_of` |
| `info` | `user_check` | show version, uptime, hours since the last backup, guild and message counts |
| `whitelist` | `user_check` | toggle whether the author's messages may be remembered |
| `delete_user <user>` | `mod_check` | forget everything a user said |
| `proc <min> <max> <out_of>` | `mod_check` | set `min_proc`, `max_proc` and `proc_out_of` |
| `sleep` | `mod_check` | mute or unmute the bot in this guild |
| `moderator <user>` | `dev_check` | add or remove a moderator |
| `backup_send` | `dev_check` | upload a backup now |
| `backup_load`, `backup_load_compat` | `dev_check` | load the attached backup file |

The checks work as follows:

- `user_check` refuses blacklisted users.
- `mod_check` admits the developer, plus moderators who are not blacklisted.
- `dev_check` admits only the developer id.

## What the package does not do

The package does not connect to any chat service. It has no command-line
program. `SclunerBot` only calls the methods of the `ChatClient` it is given,
such as sending messages, reacting, uploading and downloading files, and
reading channel history. You have to supply that client, along with the event
loop that feeds it ready and message events.