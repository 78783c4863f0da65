"""Rate-limited, retried JSON POST to the automation webhook."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from matchday.delivery.models import DeliveryAttempt
from matchday.errors import PermanentDeliveryFailure, TransientDeliveryFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
_MAX_BODY_CHARS = 2000


class WebhookClient:
    """POST with a fixed pause before every attempt and a fixed delay between retries."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
        rate_limit_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        self._url = url
        self._timeout = timeout
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._rate_limit_interval = rate_limit_interval
        self._sleep = sleep
        self._clock = clock

    @property
    def url(self) -> str:
        return self._url

    async def _post_once(
        self, client: httpx.AsyncClient, body: dict[str, Any], headers: dict[str, str]
    ) -> tuple[int, str]:
        try:
            response = await client.post(self._url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransientDeliveryFailure(f"transport error: {e}") from e
        text = response.text[:_MAX_BODY_CHARS]
        if not response.is_success:
            raise TransientDeliveryFailure(
                f"HTTP {response.status_code}", status=response.status_code, body=text
            )
        return response.status_code, text

    async def deliver(
        self, body: dict[str, Any], idempotency_key: str | None = None
    ) -> list[DeliveryAttempt]:
        """Send body. Returns attempts (last one succeeded) or raises PermanentDeliveryFailure."""
        headers = {"Content-Type": "application/json"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        attempts: list[DeliveryAttempt] = []
        last_body = ""
        event_type = body.get("event_type", "?")
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for attempt in range(1, self._retry_attempts + 1):
                await self._sleep(self._rate_limit_interval)
                try:
                    status, _text = await self._post_once(client, body, headers)
                except TransientDeliveryFailure as e:
                    last_body = e.body
                    attempts.append(
                        DeliveryAttempt(
                            attempt_number=attempt,
                            http_status=e.status,
                            succeeded=False,
                            timestamp_ms=int(self._clock() * 1000),
                            error=str(e),
                        )
                    )
                    logger.warning(
                        "webhook: %s attempt %d/%d failed: %s",
                        event_type,
                        attempt,
                        self._retry_attempts,
                        e,
                    )
                    if attempt < self._retry_attempts:
                        await self._sleep(self._retry_delay)
                    continue
                attempts.append(
                    DeliveryAttempt(
                        attempt_number=attempt,
                        http_status=status,
                        succeeded=True,
                        timestamp_ms=int(self._clock() * 1000),
                    )
                )
                logger.info("webhook: %s delivered on attempt %d (HTTP %d)", event_type, attempt, status)
                return attempts
        raise PermanentDeliveryFailure(
            f"{event_type}: all {self._retry_attempts} attempts failed",
            attempts=attempts,
            body=last_body,
        )
