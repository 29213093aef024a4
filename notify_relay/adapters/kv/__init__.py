"""Keyed store adapters.

The rate limiter and the notification store only ever talk to
``AbstractKeyValueStore``; which engine sits behind it is a deployment choice.
"""

from notify_relay.adapters.kv.base import AbstractKeyValueStore, Key, KvEntry
from notify_relay.adapters.kv.in_memory import InMemoryKeyValueStore
from notify_relay.adapters.kv.sqlite import SqliteKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "Key",
    "KvEntry",
    "SqliteKeyValueStore",
]
