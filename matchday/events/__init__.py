"""Event Bus: in-process publish/subscribe for match and delivery events."""

from matchday.events.bus import HISTORY_CAPACITY, EventBus
from matchday.events.models import (
    BusStatistics,
    Event,
    EventMetadata,
    HandlerResult,
    PublishResult,
    Subscription,
)
from matchday.events.topics import DeliveryTopics, MatchTopics

__all__ = [
    "HISTORY_CAPACITY",
    "BusStatistics",
    "DeliveryTopics",
    "Event",
    "EventBus",
    "EventMetadata",
    "HandlerResult",
    "MatchTopics",
    "PublishResult",
    "Subscription",
]
