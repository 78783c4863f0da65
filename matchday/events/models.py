"""Event, subscription and publish-report models for the Event Bus."""

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

__all__ = [
    "BusStatistics",
    "Event",
    "EventMetadata",
    "HandlerResult",
    "PublishResult",
    "Subscription",
    "compile_pattern",
]

Handler = Callable[["Event"], Awaitable[Any] | None]
EventFilter = Callable[["Event"], bool]


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob-like topic pattern to an anchored regex.

    '*' matches any run of characters (dots included), '?' exactly one.
    Everything else is literal.
    """
    parts: list[str] = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


@dataclass(frozen=True)
class EventMetadata:
    timestamp: str
    source: str = "system"
    correlation_id: str | None = None
    actor: str | None = None


@dataclass(frozen=True)
class Event:
    """Immutable event passed to handlers."""

    id: str
    name: str
    data: dict[str, Any]
    metadata: EventMetadata
    published_at_ms: int


@dataclass
class Subscription:
    """Registered handler. Matcher is compiled once at subscribe time."""

    id: str
    pattern: str
    handler: Handler
    matcher: re.Pattern[str]
    once: bool = False
    priority: int = 0
    filter: EventFilter | None = None
    max_retries: int = 0
    subscribed_at: float = 0.0
    call_count: int = 0
    sequence: int = 0

    def matches(self, name: str) -> bool:
        return self.matcher.match(name) is not None


@dataclass
class HandlerResult:
    """Outcome of one handler for one publish call."""

    subscription_id: str
    success: bool
    attempts: int
    error: str | None = None
    value: Any = None


@dataclass
class PublishResult:
    event_id: str
    listeners_notified: int
    results: list[HandlerResult] = field(default_factory=list)

    @property
    def failed(self) -> list[HandlerResult]:
        return [r for r in self.results if not r.success]


@dataclass
class BusStatistics:
    """Derived view over history and the live subscription registry."""

    total_events: int
    recent_events_last_hour: int
    distinct_event_names: int
    top_event_counts: list[tuple[str, int]]
    active_subscription_count: int
