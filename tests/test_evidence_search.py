import aiohttp
import pytest

from content_worker.core.config import settings
from content_worker.services.evidence.web_search import EvidenceSearch


class _FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        return self.payload


class _FakeSession:
    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self.payload = payload or {}
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params})
        if self.error:
            raise self.error
        return _FakeResponse(self.status, self.payload)


ITEMS = {
    "items": [
        {"link": "https://someblog.com/a", "snippet": "A blog take", "displayLink": "someblog.com"},
        {"link": "https://www.reddit.com/r/x", "snippet": "forum thread"},
        {"link": "https://www.cdc.gov/vaccines", "snippet": "Vaccines do not cause autism", "displayLink": "www.cdc.gov"},
        {"link": "https://nolabel.org/x", "title": "Fallback to title"},
        {"snippet": "no link"},
    ]
}


@pytest.mark.asyncio
async def test_search_returns_ranked_evidence():
    session = _FakeSession(payload=ITEMS)
    results = await EvidenceSearch("key", "cse").search("vaccines autism", session=session, limit=5)

    assert [ev.url for ev in results] == ["https://www.cdc.gov/vaccines", "https://nolabel.org/x", "https://someblog.com/a"]
    assert results[0].quality == 0.95
    assert results[1].snippet == "Fallback to title"
    assert results[1].source == "nolabel.org"
    params = session.requests[0]["params"]
    assert params == {"key": "key", "cx": "cse", "q": "vaccines autism", "num": "5"}


@pytest.mark.asyncio
async def test_search_respects_limit():
    results = await EvidenceSearch("key", "cse").search("q", session=_FakeSession(payload=ITEMS), limit=1)
    assert len(results) == 1


@pytest.mark.asyncio
async def test_http_error_gives_no_evidence():
    assert await EvidenceSearch("key", "cse").search("q", session=_FakeSession(status=403)) == []


@pytest.mark.asyncio
async def test_client_error_gives_no_evidence():
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    assert await EvidenceSearch("key", "cse").search("q", session=session) == []


def test_missing_credentials(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_API_KEY", None)
    monkeypatch.setattr(settings, "GOOGLE_CSE_ID", None)
    with pytest.raises(RuntimeError):
        EvidenceSearch()
    assert EvidenceSearch.is_configured() is False


def test_configured_when_enabled_with_keys(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_API_KEY", "k")
    monkeypatch.setattr(settings, "GOOGLE_CSE_ID", "c")
    monkeypatch.setattr(settings, "VERIFY_WEB_SEARCH", True)
    assert EvidenceSearch.is_configured() is True
    monkeypatch.setattr(settings, "VERIFY_WEB_SEARCH", False)
    assert EvidenceSearch.is_configured() is False
