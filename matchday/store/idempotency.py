"""Two-tier idempotency store: TTL cache in front of the durable store.

The durable tier keeps every known key in one JSON object under a single
namespace, because the durable store only supports whole-value writes.
mark_processed is therefore a read-modify-write. It is serialized within a
process by a lock, but two processes sharing the same durable store can both
pass has_processed before either marks the key and send twice. Keep the
webhook rate-limit interval large relative to trigger skew and rely on the
sink's Idempotency-Key handling as the backstop.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable

from matchday.errors import CollaboratorUnavailable
from matchday.store.durable import DurableStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "MAKE_IDEMPOTENCY_KEYS"
DEFAULT_CACHE_TTL = 21600.0
DEFAULT_DURABLE_TTL = 86400.0


@dataclass(frozen=True)
class IdempotencyRecord:
    key: str
    processed_at_ms: int


def batch_key(
    kind: str,
    round_id: str | int | None,
    start: date | str | None,
    end: date | str | None,
) -> str:
    """Key for a logical batch: derived from request shape, never from row content."""
    return "_".join(
        [
            kind,
            _part(round_id),
            _part(start.isoformat() if isinstance(start, date) else start),
            _part(end.isoformat() if isinstance(end, date) else end),
        ]
    )


def live_event_key(
    match_id: str,
    minute: int | str | None,
    player: str | None,
    event_type: str,
) -> str:
    """Key for a live match event: match, minute, player and event type."""
    return "_".join(["live", _part(match_id), _part(minute), _part(player), event_type])


def _part(value: object) -> str:
    if value is None or value == "":
        return "none"
    return str(value).strip().replace(" ", "-").lower()


class IdempotencyStore:
    """Answers 'has key K been processed' and records claims in both tiers."""

    def __init__(
        self,
        durable: DurableStore,
        namespace: str = DEFAULT_NAMESPACE,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        durable_ttl: float | None = DEFAULT_DURABLE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._durable = durable
        self._namespace = namespace
        self._cache_ttl = cache_ttl
        self._durable_ttl = durable_ttl
        self._clock = clock
        # key -> (processed_at_ms, cache expiry epoch seconds)
        self._cache: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    def _cache_get(self, key: str) -> int | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        processed_at_ms, expires_at = entry
        if expires_at <= self._clock():
            del self._cache[key]
            return None
        return processed_at_ms

    def _cache_put(self, key: str, processed_at_ms: int) -> None:
        expires_at = self._clock() + self._cache_ttl
        if self._durable_ttl is not None:
            # A cached claim never outlives its durable record
            expires_at = min(expires_at, processed_at_ms / 1000 + self._durable_ttl)
        self._cache[key] = (processed_at_ms, expires_at)

    def _expired(self, processed_at_ms: int) -> bool:
        if self._durable_ttl is None:
            return False
        return processed_at_ms / 1000 + self._durable_ttl <= self._clock()

    async def _load_durable(self) -> dict[str, int]:
        raw = await self._durable.get(self._namespace)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("idempotency: namespace %s holds invalid JSON", self._namespace)
            raise CollaboratorUnavailable("idempotency store", e) from e
        if not isinstance(data, dict):
            return {}
        return {k: int(v) for k, v in data.items() if isinstance(v, (int, float))}

    async def get_record(self, key: str) -> IdempotencyRecord | None:
        cached = self._cache_get(key)
        if cached is not None:
            return IdempotencyRecord(key=key, processed_at_ms=cached)
        processed_at_ms = (await self._load_durable()).get(key)
        if processed_at_ms is None or self._expired(processed_at_ms):
            return None
        self._cache_put(key, processed_at_ms)
        return IdempotencyRecord(key=key, processed_at_ms=processed_at_ms)

    async def has_processed(self, key: str) -> bool:
        """Cache first; on miss check the durable tier and back-fill the cache."""
        return await self.get_record(key) is not None

    async def mark_processed(self, key: str) -> IdempotencyRecord:
        """Record key in both tiers. An existing record is kept, never updated."""
        async with self._lock:
            records = await self._load_durable()
            existing = records.get(key)
            if existing is not None and not self._expired(existing):
                self._cache_put(key, existing)
                return IdempotencyRecord(key=key, processed_at_ms=existing)
            processed_at_ms = int(self._clock() * 1000)
            records[key] = processed_at_ms
            if self._durable_ttl is not None:
                records = {k: v for k, v in records.items() if not self._expired(v)}
            await self._durable.set(self._namespace, json.dumps(records, sort_keys=True))
            self._cache_put(key, processed_at_ms)
        logger.debug("idempotency: marked %s", key)
        return IdempotencyRecord(key=key, processed_at_ms=processed_at_ms)

    async def forget(self, key: str) -> bool:
        """Drop key from both tiers so the same logical batch can be sent again."""
        async with self._lock:
            in_cache = self._cache.pop(key, None) is not None
            records = await self._load_durable()
            in_durable = records.pop(key, None) is not None
            if in_durable:
                await self._durable.set(self._namespace, json.dumps(records, sort_keys=True))
        if in_cache or in_durable:
            logger.info("idempotency: forgot %s", key)
        return in_cache or in_durable
