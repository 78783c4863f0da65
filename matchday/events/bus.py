"""Synchronous-per-call event transport: publish -> history -> ordered handlers.

Handlers run inline in priority order. Each handler's outcome is captured
independently, so one failing subscriber never hides delivery to the others.
"""

import asyncio
import inspect
import itertools
import logging
import time
import uuid
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from matchday.events.models import (
    BusStatistics,
    Event,
    EventFilter,
    EventMetadata,
    Handler,
    HandlerResult,
    PublishResult,
    Subscription,
    compile_pattern,
)

logger = logging.getLogger(__name__)

HISTORY_CAPACITY = 1000
_TOP_EVENTS = 10
_HOUR = 3600.0


class EventBus:
    """In-process pub/sub with glob patterns, priorities and bounded history."""

    def __init__(
        self,
        retry_base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._clock = clock
        self._subscriptions: dict[str, Subscription] = {}
        self._by_pattern: dict[str, list[Subscription]] = {}
        self._history: deque[Event] = deque(maxlen=HISTORY_CAPACITY)
        self._sequence = itertools.count()

    def subscribe(
        self,
        pattern: str,
        handler: Handler,
        *,
        once: bool = False,
        priority: int = 0,
        filter: EventFilter | None = None,
        retries: int = 0,
    ) -> str:
        """Register handler for pattern. Returns subscription id."""
        if not pattern:
            raise ValueError("pattern must be a non-empty string")
        if retries < 0:
            raise ValueError("retries must be >= 0")
        sub = Subscription(
            id=f"sub_{uuid.uuid4().hex[:12]}",
            pattern=pattern,
            handler=handler,
            matcher=compile_pattern(pattern),
            once=once,
            priority=priority,
            filter=filter,
            max_retries=retries,
            subscribed_at=self._clock(),
            sequence=next(self._sequence),
        )
        self._subscriptions[sub.id] = sub
        subs = self._by_pattern.setdefault(pattern, [])
        subs.append(sub)
        # Stable sort keeps insertion order among equal priorities
        subs.sort(key=lambda s: -s.priority)
        logger.debug("EventBus: %s subscribed to %r (priority %d)", sub.id, pattern, priority)
        return sub.id

    def unsubscribe(self, subscription_id: str) -> bool:
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return False
        subs = self._by_pattern.get(sub.pattern, [])
        self._by_pattern[sub.pattern] = [s for s in subs if s.id != subscription_id]
        if not self._by_pattern[sub.pattern]:
            del self._by_pattern[sub.pattern]
        return True

    def subscription_count(self, pattern: str | None = None) -> int:
        if pattern is None:
            return len(self._subscriptions)
        return len(self._by_pattern.get(pattern, []))

    async def publish(
        self,
        name: str,
        data: dict[str, Any] | None = None,
        *,
        source: str = "system",
        correlation_id: str | None = None,
        actor: str | None = None,
    ) -> PublishResult:
        """Record event in history and deliver it to every matching subscription."""
        now = self._clock()
        event = Event(
            id=f"evt_{uuid.uuid4().hex}",
            name=name,
            data=dict(data or {}),
            metadata=EventMetadata(
                timestamp=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
                source=source,
                correlation_id=correlation_id,
                actor=actor,
            ),
            published_at_ms=int(now * 1000),
        )
        self._history.append(event)

        targets = [s for s in self._matching(name) if self._accepts(s, event)]
        results: list[HandlerResult] = []
        for sub in targets:
            # A once-subscription may have been removed by an earlier handler
            if sub.id not in self._subscriptions:
                continue
            # Removed before the call so a nested publish cannot reach it again
            if sub.once:
                self.unsubscribe(sub.id)
            results.append(await self._invoke(sub, event))

        failures = sum(1 for r in results if not r.success)
        if failures:
            logger.warning(
                "EventBus: %d/%d handlers failed for %s (%s)",
                failures,
                len(results),
                name,
                event.id,
            )
        return PublishResult(
            event_id=event.id, listeners_notified=len(results), results=results
        )

    def _matching(self, name: str) -> list[Subscription]:
        """All subscriptions matching name, by priority desc then subscription order."""
        found = [
            sub
            for subs in self._by_pattern.values()
            if subs and subs[0].matches(name)
            for sub in subs
        ]
        found.sort(key=lambda s: (-s.priority, s.sequence))
        return found

    @staticmethod
    def _accepts(sub: Subscription, event: Event) -> bool:
        if sub.filter is None:
            return True
        try:
            return bool(sub.filter(event))
        except Exception as e:
            logger.warning("EventBus: filter of %s raised for %s: %s", sub.id, event.name, e)
            return False

    async def _invoke(self, sub: Subscription, event: Event) -> HandlerResult:
        """Run handler with up to max_retries re-invocations (exponential backoff)."""
        error: str | None = None
        attempts = 0
        for attempt in range(sub.max_retries + 1):
            if attempt > 0:
                await self._sleep(self._retry_base_delay * (2 ** (attempt - 1)))
            attempts += 1
            sub.call_count += 1
            try:
                value = sub.handler(event)
                if inspect.isawaitable(value):
                    value = await value
                return HandlerResult(
                    subscription_id=sub.id, success=True, attempts=attempts, value=value
                )
            except Exception as e:
                error = str(e) or type(e).__name__
                logger.exception(
                    "EventBus handler %s failed for event %s/%s (attempt %d/%d): %s",
                    sub.id,
                    event.name,
                    event.id,
                    attempts,
                    sub.max_retries + 1,
                    e,
                )
        return HandlerResult(
            subscription_id=sub.id, success=False, attempts=attempts, error=error
        )

    def get_history(self, pattern: str | None = None, limit: int | None = None) -> list[Event]:
        """Events in publish order (oldest first), optionally filtered by pattern."""
        events = list(self._history)
        if pattern is not None:
            matcher = compile_pattern(pattern)
            events = [e for e in events if matcher.match(e.name)]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear_history(self) -> None:
        self._history.clear()

    def get_statistics(self) -> BusStatistics:
        cutoff_ms = int((self._clock() - _HOUR) * 1000)
        counts = Counter(e.name for e in self._history)
        return BusStatistics(
            total_events=len(self._history),
            recent_events_last_hour=sum(
                1 for e in self._history if e.published_at_ms >= cutoff_ms
            ),
            distinct_event_names=len(counts),
            top_event_counts=counts.most_common(_TOP_EVENTS),
            active_subscription_count=len(self._subscriptions),
        )
