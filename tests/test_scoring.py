import asyncio

import pytest
import requests

from runscope.core.errors import ScoringServiceError
from runscope.models.run import Run
from runscope.services.filters import DEFAULT_REGISTRY
from runscope.services.scoring import ScoringClient, set_scoring_client


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture(autouse=True)
def _reset_client():
    yield
    set_scoring_client(None)


def test_score_posts_text_and_params():
    session = _FakeSession(_FakeResponse(payload={"score": 0.7}))
    client = ScoringClient("http://scoring.local/", timeout=3, session_factory=lambda: session)

    reply = asyncio.run(client.score("tone", "hello", {"persona": "friendly"}))

    assert reply == {"score": 0.7}
    assert session.calls == [
        {
            "url": "http://scoring.local/tone",
            "json": {"text": "hello", "params": {"persona": "friendly"}},
            "timeout": (5, 3),
        }
    ]


def test_unconfigured_client_raises():
    client = ScoringClient(None, session_factory=lambda: _FakeSession())
    assert client.configured is False
    with pytest.raises(ScoringServiceError):
        asyncio.run(client.score("sentiment", "hi"))


def test_transport_error_raises():
    client = ScoringClient("http://scoring.local", session_factory=lambda: _FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(ScoringServiceError):
        asyncio.run(client.score("sentiment", "hi"))


def test_non_2xx_keeps_status_code():
    client = ScoringClient("http://scoring.local", session_factory=lambda: _FakeSession(_FakeResponse(503, text="busy")))
    with pytest.raises(ScoringServiceError) as exc_info:
        asyncio.run(client.score("sentiment", "hi"))
    assert exc_info.value.status_code == 503


@pytest.mark.parametrize("payload", [ValueError("no json"), ["not", "an", "object"]])
def test_bad_payload_raises(payload):
    client = ScoringClient("http://scoring.local", session_factory=lambda: _FakeSession(_FakeResponse(payload=payload)))
    with pytest.raises(ScoringServiceError):
        asyncio.run(client.score("sentiment", "hi"))


def test_sentiment_filter_uses_min_score():
    set_scoring_client(ScoringClient("http://scoring.local", session_factory=lambda: _FakeSession(_FakeResponse(payload={"score": 0.2}))))
    run = Run(id="r1", output="meh")
    sentiment = DEFAULT_REGISTRY.lookup("sentiment")

    assert asyncio.run(sentiment.evaluate(run, {"min_score": 0.1})).passed is True
    outcome = asyncio.run(sentiment.evaluate(run, {"min_score": 0.5}))
    assert outcome.passed is False
    assert outcome.details == {"score": 0.2}


def test_tone_filter_compares_label_to_persona():
    session = _FakeSession(_FakeResponse(payload={"label": "Friendly", "reason": "warm greeting"}))
    set_scoring_client(ScoringClient("http://scoring.local", session_factory=lambda: session))
    run = Run(id="r1", output="Hi there, happy to help!")
    tone = DEFAULT_REGISTRY.lookup("tone")

    assert asyncio.run(tone.evaluate(run, {"persona": "friendly"})).passed is True
    assert asyncio.run(tone.evaluate(run, {"persona": "formal"})).passed is False
    assert session.calls[0]["json"]["params"] == {"persona": "friendly"}


def test_concurrent_calls_use_separate_sessions():
    sessions = []

    def factory():
        session = _FakeSession(_FakeResponse(payload={"score": 1.0}))
        sessions.append(session)
        return session

    client = ScoringClient("http://scoring.local", session_factory=factory)

    async def scenario():
        return await asyncio.gather(*(client.score("sentiment", f"text {i}") for i in range(4)))

    replies = asyncio.run(scenario())

    assert replies == [{"score": 1.0}] * 4
    assert len(sessions) == 4
    assert all(len(session.calls) == 1 and session.closed for session in sessions)
