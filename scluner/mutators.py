"""Message mutators that alter a recalled message before it is sent."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from random import Random
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .models import SclunerGuild


SUBJECT_PRONOUNS = ("he", "she", "it", "they")
OBJECT_PRONOUNS = ("him", "her", "it", "them")
POSSESSIVE_PRONOUNS = ("his", "her", "its", "their")
_ALL_PRONOUNS = (*SUBJECT_PRONOUNS, *OBJECT_PRONOUNS, *POSSESSIVE_PRONOUNS)


def _chance(rng: Random, numerator: int, denominator: int) -> bool:
    """Return True with probability numerator/denominator."""
    return rng.randrange(denominator) < numerator


class MessageMutator(ABC):
    """Something that may rewrite a message, or leave it alone."""

    @abstractmethod
    def mutate(
        self, text: str, guild: "SclunerGuild", emojis: Sequence[str], rng: Random
    ) -> Optional[str]:
        """Return the rewritten text, or None when nothing was changed."""


class AppendEmote(MessageMutator):
    """Appends one of the guild's emojis to the end of the text."""

    def mutate(self, text, guild, emojis, rng):
        if not _chance(rng, 1, 16):
            return None
        if not emojis:
            return None
        return f"{text} {rng.choice(emojis)}"


class MessageSplicer(MessageMutator):
    """Splices the text together with another remembered message."""

    def mutate(self, text, guild, emojis, rng):
        if not _chance(rng, 1, 16):
            return None
        if not guild.messages:
            return None

        input_tokens = text.split()
        random_tokens = rng.choice(guild.messages).content.split()
        input_len = len(text.encode("utf-8"))
        random_len = len(random_tokens)

        # Take most from the input if it is larger.
        if input_len > random_len:
            cut = rng.randrange(input_len)
            return " ".join(input_tokens[:cut]) + " ".join(random_tokens[cut:])

        if random_len == 0:
            return None
        cut = rng.randrange(random_len)
        return " ".join(random_tokens[:cut]) + " ".join(input_tokens[cut:])


class Misgendering(MessageMutator):
    """Drops pronouns from the text at random.

    Each whitespace-separated pronoun is removed with a one in three chance;
    the remaining words are each followed by a space. Returns None when the
    text holds no pronoun or when none was removed.
    """

    def mutate(self, text, guild, emojis, rng):
        if not _chance(rng, 1, 9):
            return None
        if not any(pronoun in text for pronoun in _ALL_PRONOUNS):
            return None

        kept = []
        changed = False
        for token in text.split():
            if token.lower() in _ALL_PRONOUNS and _chance(rng, 1, 3):
                changed = True
                continue
            kept.append(token)

        if not changed:
            return None
        return "".join(f"{token} " for token in kept)


class DefinedMutators(enum.Enum):
    """The mutators a guild may allow, by their stored name."""

    APPEND_EMOTE = "AppendEmote"
    MESSAGE_SPLICER = "MessageSplicer"
    MISGENDERING = "Misgendering"

    @classmethod
    def default_allowed(cls) -> list["DefinedMutators"]:
        return [cls.APPEND_EMOTE, cls.MESSAGE_SPLICER, cls.MISGENDERING]

    @staticmethod
    def to_mutators(allowed: Sequence["DefinedMutators"]) -> list[MessageMutator]:
        return [_MUTATOR_TYPES[kind]() for kind in allowed]


_MUTATOR_TYPES = {
    DefinedMutators.APPEND_EMOTE: AppendEmote,
    DefinedMutators.MESSAGE_SPLICER: MessageSplicer,
    DefinedMutators.MISGENDERING: Misgendering,
}


def maybe_mutate(
    text: str, guild: "SclunerGuild", emojis: Sequence[str], rng: Random
) -> str:
    """Run the guild's allowed mutators over the text in a random order."""
    mutators = DefinedMutators.to_mutators(guild.allowed_mutators)
    rng.shuffle(mutators)
    for mutator in mutators:
        result = mutator.mutate(text, guild, emojis, rng)
        if result is not None:
            text = result
    return text