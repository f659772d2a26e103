"""Unit tests for the retrying HTTP client."""

import httpx
import pytest

from conftest import make_client
from core.errors import ErrorKind


class Counter:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        item = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item, json=[])


@pytest.mark.asyncio
async def test_success_returns_immediately(quiet_logger, fake_sleep):
    handler = Counter([200])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert outcome.ok
    assert outcome.status == 200
    assert outcome.attempts == 1
    assert handler.calls == 1
    assert fake_sleep.calls == []


@pytest.mark.asyncio
async def test_always_429_makes_exactly_max_attempts(quiet_logger, fake_sleep):
    handler = Counter([429])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things", max_attempts=3)
    assert not outcome.ok
    assert handler.calls == 3
    assert outcome.attempts == 3
    assert outcome.kind == ErrorKind.RATE_LIMITED
    assert outcome.error == "Max retries exceeded"
    # 2s * 2^n, nothing after the final attempt
    assert fake_sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_404_is_terminal_without_retry(quiet_logger, fake_sleep):
    handler = Counter([404, 200])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert not outcome.ok
    assert handler.calls == 1
    assert outcome.status == 404
    assert outcome.error == "HTTP 404"
    assert outcome.kind == ErrorKind.CLIENT_REJECTION
    assert fake_sleep.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_access_denied_is_terminal(quiet_logger, fake_sleep, status):
    handler = Counter([status])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert outcome.kind == ErrorKind.ACCESS_DENIED
    assert outcome.response is not None
    assert handler.calls == 1


@pytest.mark.asyncio
async def test_server_error_then_success(quiet_logger, fake_sleep):
    handler = Counter([503, 500, 200])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert outcome.ok
    assert handler.calls == 3
    assert fake_sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_server_errors_exhausted_keep_last_error(quiet_logger, fake_sleep):
    handler = Counter([500, 502, 503])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert not outcome.ok
    assert outcome.error == "HTTP 503"
    assert outcome.kind == ErrorKind.SERVER_FAULT


@pytest.mark.asyncio
async def test_rate_limit_does_not_replace_recorded_error(quiet_logger, fake_sleep):
    handler = Counter([500, 429, 429])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert outcome.error == "HTTP 500"
    assert fake_sleep.calls == [1.0, 4.0]


@pytest.mark.asyncio
async def test_transport_errors_retry_then_fail(quiet_logger, fake_sleep):
    handler = Counter([httpx.ConnectError("connection refused")])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things", max_attempts=3)
    assert not outcome.ok
    assert handler.calls == 3
    assert outcome.kind == ErrorKind.TRANSIENT_NETWORK
    assert "connection refused" in outcome.error
    assert fake_sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_transport_error_then_success(quiet_logger, fake_sleep):
    handler = Counter([httpx.ReadTimeout("timed out"), 200])
    client = make_client(handler, quiet_logger, fake_sleep)
    outcome = await client.get("/rest/v1/things")
    assert outcome.ok
    assert outcome.attempts == 2
