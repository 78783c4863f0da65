"""Durable key-value store and the two-tier idempotency store built on it."""

from matchday.store.durable import DurableStore, JsonFileStore
from matchday.store.idempotency import (
    IdempotencyRecord,
    IdempotencyStore,
    batch_key,
    live_event_key,
)

__all__ = [
    "DurableStore",
    "IdempotencyRecord",
    "IdempotencyStore",
    "JsonFileStore",
    "batch_key",
    "live_event_key",
]
