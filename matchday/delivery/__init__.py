"""Delivery: batch building, webhook client and the delivery pipeline."""

from matchday.delivery.models import (
    MAX_BATCH_ITEMS,
    BatchKind,
    BatchPayload,
    DateRange,
    DeliveryAttempt,
    DeliveryResult,
    LiveMatchEvent,
    MatchRow,
    MatchStatus,
)
from matchday.delivery.pipeline import DeliveryPipeline
from matchday.delivery.webhook import WebhookClient

__all__ = [
    "MAX_BATCH_ITEMS",
    "BatchKind",
    "BatchPayload",
    "DateRange",
    "DeliveryAttempt",
    "DeliveryPipeline",
    "DeliveryResult",
    "LiveMatchEvent",
    "MatchRow",
    "MatchStatus",
    "WebhookClient",
]
