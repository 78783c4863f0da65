"""Operator alerting for exhausted deliveries. Best effort: never raises."""

import logging
from typing import Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@runtime_checkable
class Alerter(Protocol):
    async def send_critical_alert(self, title: str, body: str) -> None: ...


class LogAlerter:
    """Writes alerts to the log at CRITICAL level."""

    async def send_critical_alert(self, title: str, body: str) -> None:
        logger.critical("ALERT: %s\n%s", title, body)


class WebhookAlerter:
    """Posts {'title', 'body', 'severity'} to an alert webhook, logging locally too."""

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._url = url
        self._timeout = timeout

    async def send_critical_alert(self, title: str, body: str) -> None:
        logger.critical("ALERT: %s", title)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._url,
                    json={"title": title, "body": body, "severity": "critical"},
                )
                response.raise_for_status()
        except Exception as e:
            logger.warning("alert webhook failed: %s", e)
