"""Chat bot core: remembers guild messages, replays them with random mutations, and keeps CBOR backups."""

__version__ = "3.0.0"