import cbor2
import pytest

from scluner import commands
from scluner.backup import SclunerBackup
from scluner.commands import CommandRequest
from scluner.models import SclunerGuild, SclunerInstance, SclunerMessage
from scluner.mutators import DefinedMutators

GUILD = 10


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def instance(clock):
    inst = SclunerInstance(backup_channel_id=1, clock=clock)
    inst.guilds[GUILD] = SclunerGuild(
        guild_id=GUILD,
        messages=[
            SclunerMessage(5, "hello world"),
            SclunerMessage(6, "goodbye"),
            SclunerMessage(7, "hello there"),
        ],
    )
    return inst


def test_dev_check(instance):
    assert commands.dev_check(instance, commands.DEV_ID) is True
    assert commands.dev_check(instance, 5) is False


def test_mod_check(instance):
    assert commands.mod_check(instance, 5) is False
    instance.modlist = [5]
    assert commands.mod_check(instance, 5) is True
    instance.blacklist = [5]
    assert commands.mod_check(instance, 5) is False


def test_mod_check_dev_always_passes(instance):
    instance.blacklist = [commands.DEV_ID]
    assert commands.mod_check(instance, commands.DEV_ID) is True


def test_user_check(instance):
    assert commands.user_check(instance, 5) is True
    instance.blacklist = [5]
    assert commands.user_check(instance, 5) is False


def test_delete_content_needs_reply(instance):
    assert commands.delete_content(instance, GUILD, None) == "PLEASE REPLY TO MESSAGE TO DELETE"
    assert len(instance.guilds[GUILD].messages) == 3


def test_delete_content_removes_matches(instance):
    reply = commands.delete_content(instance, GUILD, "hello")
    assert reply == "DELETED ALL MESSAGES WITH CONTENT"
    assert [m.content for m in instance.guilds[GUILD].messages] == ["goodbye"]


def test_info_content_lists_senders(instance):
    reply = commands.info_content(instance, GUILD, "hello")
    assert reply == "MESSAGE ORIGINALLY SENT BY USERS:\n<@5>\n<@7>\n"


def test_info_content_needs_reply(instance):
    reply = commands.info_content(instance, GUILD, None)
    assert reply == "PLEASE REPLY TO A SCLUNER MESSAGE TO USE AS CONTENT"


def test_proc_then_info_proc(instance):
    assert commands.proc(instance, GUILD, 2, 5, 20) == "SUCCESSFULLY SET PROC VARS"
    assert commands.info_proc(instance, GUILD) == (
        "MIN_PROC:2\nMAX_PROC:5\nPROC_OUT_OF:20\n"
        "CHANCE OF RANDOM REPLY: [2..5] out of 20 tries"
    )


def test_info_reports_hours_and_counts(instance, clock):
    clock.now += 7200
    assert commands.info(instance, GUILD) == (
        "SCLUNER v3.0.0\nRUNNING FOR: 2h\nTIME SINCE BACKUP: 2h\n"
        "ON 1 GUILDS\nSTORING 3 MESSAGES ON CURRENT ONE"
    )


def test_whitelist_toggles(instance):
    assert commands.whitelist(instance, 42) == "ADDED USER <@42>"
    assert instance.whitelist == [42]
    assert commands.whitelist(instance, 42) == "REMOVED USER <@42>"
    assert instance.whitelist == []


def test_delete_user(instance):
    assert commands.delete_user(instance, GUILD, 6) == "DELETED ALL MESSAGES SENT BY <@6>"
    assert all(m.user_id != 6 for m in instance.guilds[GUILD].messages)
    assert len(instance.guilds[GUILD].messages) == 2


def test_sleep_toggles(instance):
    assert commands.sleep(instance, GUILD) == "A mimir"
    assert instance.guilds[GUILD].asleep is True
    assert commands.sleep(instance, GUILD) == "Good morning!"
    assert instance.guilds[GUILD].asleep is False


def test_moderator_toggles(instance):
    assert commands.moderator(instance, 77) == "ADDED MODERATOR <@77>"
    assert instance.modlist == [77]
    assert commands.moderator(instance, 77) == "REMOVED MODERATOR <@77>"
    assert instance.modlist == []


def test_unknown_guild_raises(instance):
    with pytest.raises(KeyError):
        commands.info_proc(instance, 999)


def test_backup_load_round_trip(instance):
    instance.whitelist = [5]
    data = SclunerBackup.from_instance(instance).to_cbor()
    other = SclunerInstance(backup_channel_id=1)
    assert commands.backup_load(other, data) == "SUCCESSFULLY LOADED BACKUP"
    assert other.guilds[GUILD].messages == instance.guilds[GUILD].messages
    assert other.whitelist == [5]


def test_backup_load_rejects_garbage(instance):
    reply = commands.backup_load(instance, b"\xff\x00garbage")
    assert reply.startswith("FILE COULDN'T BE DESERIALIZED: ")
    assert len(instance.guilds[GUILD].messages) == 3


def test_backup_load_compat(instance):
    data = cbor2.dumps(
        {
            "guilds_keys": [20],
            "guilds_values": [
                {
                    "guild_id": 20,
                    "messages": [{"user_id": 5, "content": "old"}],
                    "asleep": False,
                    "min_proc": 1,
                    "max_proc": 4,
                    "proc_out_of": 18,
                    "proc": 2,
                }
            ],
            "whitelist": [],
            "blacklist": [],
            "modlist": [8],
        }
    )
    assert commands.backup_load_compat(instance, data) == "SUCCESSFULLY COMPAT LOADED BACKUP"
    guild = instance.guilds[20]
    assert guild.allowed_mutators == DefinedMutators.default_allowed()
    assert guild.messages == [SclunerMessage(5, "old")]
    assert instance.modlist == [8]


def test_parse_command():
    assert commands.parse_command("::SCL_proc 1 2 3") == CommandRequest("proc", ("1", "2", "3"))
    assert commands.parse_command("::SCL_info") == CommandRequest("info")


def test_parse_command_rejects_other_text():
    assert commands.parse_command("hello ::SCL_info") is None
    assert commands.parse_command("::SCL_") is None