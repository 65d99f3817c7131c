import base64

import requests

from image_organizer import config
from image_organizer.enrichment.client import OllamaTagEnricher, normalize_keywords


class FakeResponse:
    def __init__(self, payload=None, status=200, bad_json=False):
        self.payload = payload
        self.status = status
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self):
        if self.bad_json:
            raise ValueError("no JSON")
        return self.payload


class FakeSession:
    """Answers keyword and caption prompts from two queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def test_normalize_keywords():
    assert normalize_keywords("Beach, Sunset, Family") == ["beach", "family", "sunset"]
    assert normalize_keywords(" Dog ,dog,, ,Park\n") == ["dog", "park"]
    assert normalize_keywords("") == []
    assert normalize_keywords(None) == []


def test_enrich_sends_two_requests():
    session = FakeSession(
        FakeResponse({"response": "Beach, Sunset, Family"}),
        FakeResponse({"response": "  A family watching the sunset.  "}),
    )
    enricher = OllamaTagEnricher("http://ollama:11434/", model="llava", timeout=12, session=session)

    result = enricher.enrich(b"\xff\xd8image")

    assert result.keywords == ["beach", "family", "sunset"]
    assert result.caption == "A family watching the sunset."

    assert len(session.calls) == 2
    url, body, timeout = session.calls[0]
    assert url == "http://ollama:11434/api/generate"
    assert timeout == 12
    assert body["model"] == "llava"
    assert body["stream"] is False
    assert body["images"] == [base64.b64encode(b"\xff\xd8image").decode("ascii")]
    assert body["prompt"] == config.KEYWORDS_PROMPT
    assert session.calls[1][1]["prompt"] == config.CAPTION_PROMPT


def test_keyword_timeout_keeps_caption():
    session = FakeSession(
        requests.exceptions.Timeout("slow"),
        FakeResponse({"response": "A cat"}),
    )

    result = OllamaTagEnricher(session=session).enrich(b"img")

    assert result.keywords == []
    assert result.caption == "A cat"


def test_malformed_responses_degrade_to_nothing():
    session = FakeSession(
        FakeResponse(bad_json=True),
        FakeResponse({"done": True}),
    )

    result = OllamaTagEnricher(session=session).enrich(b"img")

    assert result.keywords == []
    assert result.caption is None


def test_http_error_degrades(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        return FakeResponse(status=500)

    monkeypatch.setattr(requests, "post", fake_post)

    result = OllamaTagEnricher().enrich(b"img")

    assert result.keywords == []
    assert result.caption is None


def test_connection_error_degrades(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fake_post)

    assert OllamaTagEnricher().enrich(b"img") == ([], None)
