"""
Test the shared HTTP client: retries, Retry-After, error mapping and rate limiting
"""
import json

import aiohttp
import pytest

from litverify.core.config import Settings
from litverify.services.http_client import HttpClient, RateLimiter
from litverify.types import CollaboratorError


class FakeResponse:
    def __init__(self, status=200, body="", headers=None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    async def json(self, content_type=None):
        return json.loads(self.body)

    async def text(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None):
        self.calls.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        pass


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_client(*responses, **settings):
    sleep = RecordingSleep()
    session = FakeSession(*responses)
    client = HttpClient(Settings(**settings), session=session, sleep=sleep)
    return client, session, sleep


@pytest.mark.asyncio
async def test_get_json_returns_decoded_body():
    client, session, sleep = make_client(FakeResponse(body='{"message": {"items": []}}'))

    data = await client.get_json("Crossref", "https://api.example/works", {"rows": 5})

    assert data == {"message": {"items": []}}
    assert session.calls == [("https://api.example/works", {"rows": 5})]
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_get_text_returns_body():
    client, _, _ = make_client(FakeResponse(body="<rss/>"))
    assert await client.get_text("CiNii", "https://cinii.example") == "<rss/>"


@pytest.mark.asyncio
async def test_503_is_retried_honoring_retry_after():
    client, session, sleep = make_client(
        FakeResponse(status=503, headers={"Retry-After": "7"}),
        FakeResponse(body='{"ok": true}'),
    )

    assert await client.get_json("Crossref", "https://api.example") == {"ok": True}
    assert len(session.calls) == 2
    assert sleep.delays == [7.0]


@pytest.mark.asyncio
async def test_429_without_header_uses_default_delay():
    client, _, sleep = make_client(
        FakeResponse(status=429),
        FakeResponse(body="{}"),
        DEFAULT_RETRY_AFTER=2.5,
    )

    await client.get_json("Semantic Scholar", "https://api.example")
    assert sleep.delays == [2.5]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    client, session, sleep = make_client(
        FakeResponse(status=500),
        FakeResponse(status=502),
        FakeResponse(status=500),
        MAX_RETRIES=3,
        RETRY_DELAY=1.0,
    )

    with pytest.raises(CollaboratorError) as exc_info:
        await client.get_json("NDL", "https://ndl.example")

    assert len(session.calls) == 3
    assert sleep.delays == [1.0, 1.0]
    assert exc_info.value.service == "NDL"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_connection_errors_are_retried():
    client, session, _ = make_client(
        aiohttp.ClientConnectionError("connection reset"),
        FakeResponse(body="[]"),
    )

    assert await client.get_json("CiNii", "https://cinii.example") == []
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    client, session, sleep = make_client(FakeResponse(status=400), FakeResponse(body="{}"))

    with pytest.raises(CollaboratorError) as exc_info:
        await client.get_json("Google Books", "https://books.example")

    assert exc_info.value.status_code == 400
    assert len(session.calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_404_is_an_error_unless_tolerated():
    client, _, _ = make_client(FakeResponse(status=404))
    with pytest.raises(CollaboratorError):
        await client.get_json("Crossref", "https://api.example/works/10.1/x")

    client, _, _ = make_client(FakeResponse(status=404))
    assert await client.get_json("Crossref", "https://api.example/works/10.1/x", not_found_ok=True) is None


@pytest.mark.asyncio
async def test_malformed_json_becomes_collaborator_error():
    client, session, _ = make_client(FakeResponse(body="<html>oops</html>"))

    with pytest.raises(CollaboratorError):
        await client.get_json("Crossref", "https://api.example")
    assert len(session.calls) == 1


def test_user_agent_includes_contact_email():
    client = HttpClient(Settings(USER_AGENT="litverify/test", CONTACT_EMAIL="me@example.org"))
    assert client.user_agent == "litverify/test (mailto:me@example.org)"


@pytest.mark.asyncio
async def test_rate_limiter_waits_for_min_interval():
    now = [100.0]
    sleep = RecordingSleep()
    limiter = RateLimiter(3.0, clock=lambda: now[0], sleep=sleep)

    assert await limiter.wait_if_needed() == 0.0
    now[0] = 101.0
    assert await limiter.wait_if_needed() == pytest.approx(2.0)
    now[0] = 110.0
    assert await limiter.wait_if_needed() == 0.0
    assert sleep.delays == [pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_rate_limiter_applies_to_every_attempt():
    now = [0.0]
    limiter_sleep = RecordingSleep()
    limiter = RateLimiter(3.0, clock=lambda: now[0], sleep=limiter_sleep)
    client, _, _ = make_client(FakeResponse(status=503), FakeResponse(body="{}"), RETRY_DELAY=0.0)

    await client.get_json("Crossref", "https://api.example", rate_limiter=limiter)

    assert limiter_sleep.delays == [3.0]
