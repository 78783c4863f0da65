"""Tests for WebhookClient: rate-limit pause, fixed retry delay, failure classification."""

import json

import httpx
import pytest

from matchday.delivery import WebhookClient
from matchday.errors import PermanentDeliveryFailure

URL = "https://hook.example.test/make"


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client(sleeps: list[float]) -> WebhookClient:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return WebhookClient(
        URL, retry_attempts=3, retry_delay=2.0, rate_limit_interval=1.0, sleep=fake_sleep
    )


@pytest.mark.asyncio
async def test_success_first_attempt(httpx_mock, client: WebhookClient, sleeps) -> None:
    httpx_mock.add_response(url=URL, method="POST", status_code=200, text="Accepted")
    attempts = await client.deliver({"event_type": "fixtures_1_league"}, idempotency_key="k-1")

    assert [a.attempt_number for a in attempts] == [1]
    assert attempts[0].succeeded is True
    assert attempts[0].http_status == 200
    assert sleeps == [1.0]

    request = httpx_mock.get_requests()[0]
    assert request.headers["Idempotency-Key"] == "k-1"
    assert json.loads(request.content) == {"event_type": "fixtures_1_league"}


@pytest.mark.asyncio
async def test_any_2xx_is_success(httpx_mock, client: WebhookClient) -> None:
    httpx_mock.add_response(url=URL, method="POST", status_code=204)
    attempts = await client.deliver({"event_type": "x"})
    assert attempts[-1].http_status == 204


@pytest.mark.asyncio
async def test_rate_limit_before_every_attempt_and_fixed_retry_delay(
    httpx_mock, client: WebhookClient, sleeps
) -> None:
    httpx_mock.add_response(url=URL, method="POST", status_code=502)
    httpx_mock.add_response(url=URL, method="POST", status_code=429)
    httpx_mock.add_response(url=URL, method="POST", status_code=200)
    attempts = await client.deliver({"event_type": "x"})

    assert [a.http_status for a in attempts] == [502, 429, 200]
    assert [a.succeeded for a in attempts] == [False, False, True]
    assert sleeps == [1.0, 2.0, 1.0, 2.0, 1.0]


@pytest.mark.asyncio
async def test_transport_error_is_retryable(httpx_mock, client: WebhookClient) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))
    httpx_mock.add_response(url=URL, method="POST", status_code=200)
    attempts = await client.deliver({"event_type": "x"})

    assert attempts[0].http_status is None
    assert "transport error" in (attempts[0].error or "")
    assert attempts[1].succeeded is True


@pytest.mark.asyncio
async def test_exhaustion_raises_permanent_failure(
    httpx_mock, client: WebhookClient, sleeps
) -> None:
    for _ in range(3):
        httpx_mock.add_response(url=URL, method="POST", status_code=500, text="scenario error")

    with pytest.raises(PermanentDeliveryFailure) as exc_info:
        await client.deliver({"event_type": "x"})

    failure = exc_info.value
    assert len(failure.attempts) == 3
    assert failure.last_status == 500
    assert failure.body == "scenario error"
    # No retry delay after the final attempt
    assert sleeps == [1.0, 2.0, 1.0, 2.0, 1.0]
    assert len(httpx_mock.get_requests()) == 3


def test_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        WebhookClient(URL, retry_attempts=0)


@pytest.mark.asyncio
async def test_malformed_url_is_a_failed_attempt(httpx_mock, sleeps) -> None:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = WebhookClient(
        "https://hook.example.test/a\x01b", retry_attempts=2, retry_delay=2.0, sleep=fake_sleep
    )
    with pytest.raises(PermanentDeliveryFailure) as exc_info:
        await client.deliver({"event_type": "x"})

    assert len(exc_info.value.attempts) == 2
    assert exc_info.value.last_status is None
    assert httpx_mock.get_requests() == []
