"""Delivery pipeline: dedup -> build bounded batch -> rate-limited send -> mark or escalate.

Every entry point returns a DeliveryResult; nothing raises to the caller.
"""

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from matchday.delivery.batches import (
    BATCH_SPECS,
    BatchSpec,
    build_batch,
    iso_timestamp,
    new_batch_id,
    wire_body,
)
from matchday.delivery.models import (
    BatchKind,
    DateRange,
    DeliveryResult,
    LiveMatchEvent,
    MatchRow,
    MatchStatus,
)
from matchday.delivery.webhook import WebhookClient
from matchday.errors import (
    BatchValidationError,
    CollaboratorUnavailable,
    PermanentDeliveryFailure,
)
from matchday.events import DeliveryTopics, EventBus, MatchTopics
from matchday.events.topics import LIVE_EVENT_TOPICS
from matchday.store.idempotency import IdempotencyStore, batch_key, live_event_key

if TYPE_CHECKING:
    from matchday.alerts import Alerter
    from matchday.rows import RowStore

logger = logging.getLogger(__name__)

_SOURCE = "delivery"


class DeliveryPipeline:
    """Posts fixtures, results, postponements and live events to the webhook."""

    def __init__(
        self,
        *,
        rows: "RowStore",
        idempotency: IdempotencyStore,
        bus: EventBus,
        webhook: WebhookClient | None,
        alerter: "Alerter",
        club_name: str,
        season: str = "",
        system_version: str = "",
        alert_on_exhaustion: bool = True,
        simulation_mode: bool = False,
        live_idempotency: IdempotencyStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rows = rows
        self._idempotency = idempotency
        # Live events dedup over a short window of their own
        self._live_idempotency = live_idempotency or idempotency
        self._bus = bus
        self._webhook = webhook
        self._alerter = alerter
        self._club_name = club_name
        self._season = season
        self._system_version = system_version
        self._alert_on_exhaustion = alert_on_exhaustion
        self._simulation_mode = simulation_mode
        self._clock = clock

    async def post_fixtures(
        self, round_id: str | int | None = None, date_range: DateRange | None = None
    ) -> DeliveryResult:
        return await self.post_batch(BatchKind.FIXTURES, round_id, date_range)

    async def post_results(
        self, round_id: str | int | None = None, date_range: DateRange | None = None
    ) -> DeliveryResult:
        return await self.post_batch(BatchKind.RESULTS, round_id, date_range)

    async def post_postponements(
        self, round_id: str | int | None = None, date_range: DateRange | None = None
    ) -> DeliveryResult:
        return await self.post_batch(BatchKind.POSTPONEMENTS, round_id, date_range)

    async def post_batch(
        self,
        kind: BatchKind | str,
        round_id: str | int | None = None,
        date_range: DateRange | None = None,
    ) -> DeliveryResult:
        try:
            return await self._post_batch(
                BatchKind(kind), round_id, date_range or DateRange()
            )
        except Exception as e:
            logger.exception("delivery: %s batch crashed: %s", kind, e)
            return DeliveryResult.failed(f"unexpected error: {e}")

    async def post_live_event(self, event: LiveMatchEvent) -> DeliveryResult:
        try:
            return await self._post_live_event(event)
        except Exception as e:
            logger.exception("delivery: live event %s crashed: %s", event.event_type, e)
            return DeliveryResult.failed(f"unexpected error: {e}", event_type=event.event_type)

    async def _post_batch(
        self, kind: BatchKind, round_id: str | int | None, date_range: DateRange
    ) -> DeliveryResult:
        spec = BATCH_SPECS[kind]
        round_str = None if round_id is None else str(round_id)
        key = batch_key(kind.value, round_str, date_range.start, date_range.end)

        duplicate = await self._check_duplicate(key)
        if duplicate is not None:
            return duplicate

        try:
            rows = await self._rows.get_eligible_rows(kind, date_range)
        except CollaboratorUnavailable as e:
            return DeliveryResult.failed(str(e), idempotency_key=key)

        if not rows:
            logger.info("delivery: no eligible %s rows for %s", kind.value, key)
            return DeliveryResult.ok(count=0, idempotency_key=key)

        try:
            payload = build_batch(spec, rows, round_str, self._season, now=self._clock())
        except BatchValidationError as e:
            logger.warning("delivery: %s rejected: %s", key, e)
            return DeliveryResult.invalid(str(e), count=len(rows), idempotency_key=key)

        body = wire_body(spec, payload, self._club_name, self._system_version)
        await self._bus.publish(
            DeliveryTopics.PREPARED,
            {
                "event_type": payload.event_type,
                "batch_id": payload.batch_id,
                "count": len(rows),
                "idempotency_key": key,
            },
            source=_SOURCE,
            correlation_id=payload.batch_id,
        )
        result = await self._send(body, key, count=len(rows))
        if result.success and not result.simulated:
            await self._complete(result, key, spec, rows)
        return result

    async def _post_live_event(self, event: LiveMatchEvent) -> DeliveryResult:
        topic = LIVE_EVENT_TOPICS.get(event.event_type)
        if topic is None:
            return DeliveryResult.invalid(
                f"unknown live event type: {event.event_type}", event_type=event.event_type
            )
        key = live_event_key(event.match_id, event.minute, event.player, event.event_type)

        duplicate = await self._check_duplicate(
            key, event_type=event.event_type, store=self._live_idempotency
        )
        if duplicate is not None:
            return duplicate

        now = self._clock()
        body: dict[str, Any] = {
            "event_type": event.event_type,
            "system_version": self._system_version,
            "club_name": self._club_name,
            **event.model_dump(exclude={"event_type"}),
            "timestamp": iso_timestamp(now),
            "batch_id": new_batch_id(event.event_type, now),
        }
        await self._bus.publish(
            topic,
            event.model_dump(),
            source=_SOURCE,
            correlation_id=body["batch_id"],
        )
        result = await self._send(body, key, count=1)
        if result.success and not result.simulated:
            await self._complete(result, key, store=self._live_idempotency)
        return result

    async def _check_duplicate(
        self,
        key: str,
        event_type: str | None = None,
        store: IdempotencyStore | None = None,
    ) -> DeliveryResult | None:
        """Duplicate result when key was already processed; failed result if the store is down."""
        try:
            processed = await (store or self._idempotency).has_processed(key)
        except CollaboratorUnavailable as e:
            return DeliveryResult.failed(str(e), idempotency_key=key, event_type=event_type)
        if not processed:
            return None
        logger.debug("delivery: duplicate request %s suppressed", key)
        await self._bus.publish(
            DeliveryTopics.DUPLICATE, {"idempotency_key": key}, source=_SOURCE
        )
        return DeliveryResult.duplicate_of(key, event_type=event_type)

    async def _send(self, body: dict[str, Any], key: str, count: int) -> DeliveryResult:
        event_type = body["event_type"]
        context: dict[str, Any] = {
            "event_type": event_type,
            "idempotency_key": key,
            "batch_id": body["batch_id"],
            "count": count,
        }
        if self._simulation_mode:
            logger.info("delivery: simulation mode, not sending %s: %s", event_type, json.dumps(body))
            return DeliveryResult.ok(simulated=True, **context)
        if self._webhook is None:
            logger.error("delivery: webhook URL not configured; %s not sent", event_type)
            return DeliveryResult.failed("webhook URL not configured", **context)

        try:
            attempts = await self._webhook.deliver(body, idempotency_key=key)
        except PermanentDeliveryFailure as e:
            await self._escalate(body, e)
            await self._bus.publish(
                DeliveryTopics.FAILED,
                {**context, "http_status": e.last_status, "attempts": len(e.attempts)},
                source=_SOURCE,
                correlation_id=body["batch_id"],
            )
            return DeliveryResult.failed(
                str(e),
                http_status=e.last_status,
                response_body=e.body,
                attempt=len(e.attempts),
                attempts=e.attempts,
                **context,
            )
        last = attempts[-1]
        return DeliveryResult.ok(
            http_status=last.http_status,
            attempt=last.attempt_number,
            attempts=attempts,
            **context,
        )

    async def _escalate(self, body: dict[str, Any], failure: PermanentDeliveryFailure) -> None:
        logger.error("delivery: %s permanently failed: %s", body["event_type"], failure)
        if not self._alert_on_exhaustion:
            return
        title = f"Webhook delivery failed: {body['event_type']}"
        details = {
            "error": str(failure),
            "http_status": failure.last_status,
            "response_body": failure.body,
            "payload": body,
        }
        try:
            await self._alerter.send_critical_alert(
                title, json.dumps(details, indent=2, default=str)
            )
        except Exception as e:
            logger.warning("delivery: alerting failed for %s: %s", body["event_type"], e)

    async def _complete(
        self,
        result: DeliveryResult,
        key: str,
        spec: BatchSpec | None = None,
        rows: list[MatchRow] | None = None,
        store: IdempotencyStore | None = None,
    ) -> None:
        """Post-success bookkeeping. Failures here are reported but do not undo the send."""
        problems: list[str] = []
        try:
            await (store or self._idempotency).mark_processed(key)
        except CollaboratorUnavailable as e:
            problems.append(str(e))
        for row in rows or []:
            try:
                if spec is not None and spec.mark_status is not None:
                    await self._rows.update_status(row.match_id, spec.mark_status)
                await self._rows.mark_posted(row.match_id)
            except CollaboratorUnavailable as e:
                problems.append(f"{row.match_id}: {e}")
                continue
            if spec is not None and spec.mark_status == MatchStatus.POSTPONED:
                await self._bus.publish(
                    MatchTopics.POSTPONED,
                    {"match_id": row.match_id, "opponent": row.opponent, "date": row.date.isoformat()},
                    source=_SOURCE,
                    correlation_id=result.batch_id,
                )
        if problems:
            result.error = "; ".join(problems)
            logger.error("delivery: %s sent but bookkeeping failed: %s", key, result.error)
        await self._bus.publish(
            DeliveryTopics.DELIVERED,
            {
                "event_type": result.event_type,
                "batch_id": result.batch_id,
                "count": result.count,
                "http_status": result.http_status,
                "attempt": result.attempt,
                "idempotency_key": key,
            },
            source=_SOURCE,
            correlation_id=result.batch_id,
        )
