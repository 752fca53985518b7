import random
from types import SimpleNamespace

import pytest

from scluner.models import SclunerGuild, SclunerInstance, SclunerMessage
from scluner.mutators import DefinedMutators


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def msg(user_id, content):
    return SclunerMessage(user_id=user_id, content=content)


def test_create_uses_defaults():
    guild = SclunerGuild.create(42, random.Random(1))
    assert (guild.min_proc, guild.max_proc, guild.proc_out_of) == (1, 4, 18)
    assert guild.allowed_mutators == DefinedMutators.default_allowed()
    assert guild.messages == []
    assert guild.asleep is False


def test_create_proc_in_range():
    procs = {SclunerGuild.create(1, random.Random(seed)).proc for seed in range(200)}
    assert procs <= {1, 2, 3}
    assert len(procs) == 3


def test_fetch_from_content_matches_substring():
    guild = SclunerGuild(guild_id=1, messages=[msg(2, "good cake"), msg(3, "bad"), msg(4, "cake!")])
    assert [m.user_id for m in guild.fetch_from_content("cake")] == [2, 4]


def test_delete_message_sender():
    guild = SclunerGuild(guild_id=1, messages=[msg(2, "a"), msg(3, "b"), msg(2, "c")])
    guild.delete_message_sender(2)
    assert guild.messages == [msg(3, "b")]


def test_delete_message_content():
    guild = SclunerGuild(guild_id=1, messages=[msg(2, "hello world"), msg(3, "bye")])
    guild.delete_message_content("world")
    assert guild.messages == [msg(3, "bye")]


def test_remember_appends_below_limit():
    guild = SclunerGuild(guild_id=1)
    guild.remember(msg(2, "hi"), random.Random(0))
    assert guild.messages == [msg(2, "hi")]


@pytest.mark.parametrize("seed", range(5))
def test_remember_caps_at_limit(seed):
    old = [msg(9, str(i)) for i in range(2222)]
    guild = SclunerGuild(guild_id=1, messages=list(old))
    guild.remember(msg(9, "new"), random.Random(seed))
    assert len(guild.messages) == 2222
    assert guild.messages[:1000] == old[:1000]
    removed = [m for m in old + [msg(9, "new")] if m not in guild.messages]
    assert len(removed) == 1


def test_message_round_trip():
    original = msg(12345, "text")
    assert SclunerMessage.from_dict(original.to_dict()) == original


def test_guild_round_trip():
    guild = SclunerGuild(
        guild_id=77,
        messages=[msg(1, "x")],
        asleep=True,
        allowed_mutators=[DefinedMutators.MISGENDERING],
        min_proc=2,
        max_proc=5,
        proc_out_of=10,
        proc=3,
    )
    assert SclunerGuild.from_dict(guild.to_dict()) == guild


def test_guild_dict_stores_mutator_names():
    data = SclunerGuild(guild_id=1).to_dict()
    assert data["allowed_mutators"] == ["AppendEmote", "MessageSplicer", "Misgendering"]


def test_guild_from_dict_missing_field():
    data = SclunerGuild(guild_id=1).to_dict()
    del data["allowed_mutators"]
    with pytest.raises(ValueError):
        SclunerGuild.from_dict(data)


def test_guild_from_dict_rejects_negative_proc():
    data = SclunerGuild(guild_id=1).to_dict()
    data["proc"] = -1
    with pytest.raises(ValueError):
        SclunerGuild.from_dict(data)


def test_message_from_dict_accepts_string_id():
    assert SclunerMessage.from_dict({"user_id": "55", "content": "c"}).user_id == 55


def test_message_from_dict_rejects_zero_id():
    with pytest.raises(ValueError):
        SclunerMessage.from_dict({"user_id": 0, "content": "c"})


def test_instance_guild_unknown_raises():
    with pytest.raises(KeyError):
        SclunerInstance(backup_channel_id=1).guild(99)


def test_ensure_guild_creates_once():
    instance = SclunerInstance(backup_channel_id=1)
    first = instance.ensure_guild(8, random.Random(0))
    second = instance.ensure_guild(8, random.Random(1))
    assert first is second
    assert instance.guild(8) is first


def test_backup_due_after_interval():
    clock = FakeClock()
    instance = SclunerInstance(backup_channel_id=1, clock=clock)
    clock.now += 43199
    assert instance.backup_due() is False
    clock.now += 1
    assert instance.backup_due() is True


def test_load_backup_replaces_state():
    clock = FakeClock()
    instance = SclunerInstance(backup_channel_id=1, clock=clock)
    clock.now += 50000
    guild = SclunerGuild(guild_id=3)
    backup = SimpleNamespace(
        guilds_keys=[3], guilds_values=[guild], whitelist=[4], blacklist=[5], modlist=[6]
    )
    instance.load_backup(backup)
    assert instance.guilds == {3: guild}
    assert (instance.whitelist, instance.blacklist, instance.modlist) == ([4], [5], [6])
    assert instance.backup_due() is False
    assert instance.startup_instant == 100.0