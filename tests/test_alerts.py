"""Tests for alerting collaborators."""

import json
import logging

import pytest

from matchday.alerts import LogAlerter, WebhookAlerter

ALERT_URL = "https://alerts.example.test/hook"


@pytest.mark.asyncio
async def test_log_alerter_logs_critical(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.CRITICAL, logger="matchday.alerts"):
        await LogAlerter().send_critical_alert("Webhook delivery failed", "{}")
    assert "Webhook delivery failed" in caplog.text


@pytest.mark.asyncio
async def test_webhook_alerter_posts_json(httpx_mock) -> None:
    httpx_mock.add_response(url=ALERT_URL, method="POST", status_code=200)
    await WebhookAlerter(ALERT_URL).send_critical_alert("title", "body")
    sent = json.loads(httpx_mock.get_requests()[0].content)
    assert sent == {"title": "title", "body": "body", "severity": "critical"}


@pytest.mark.asyncio
async def test_webhook_alerter_never_raises(httpx_mock) -> None:
    httpx_mock.add_response(url=ALERT_URL, method="POST", status_code=500)
    await WebhookAlerter(ALERT_URL).send_critical_alert("title", "body")
