from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from scholarfolio.domain.errors import CatalogHTTPError, CatalogNotFoundError
from scholarfolio.infrastructure.connectors.openalex_client import OpenAlexClient


class _FakeResponse:
    def __init__(self, status: int, payload: Any = None):
        self.status = status
        self._payload = payload

    async def json(self):
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    """Serves queued responses and records every request."""

    def __init__(self, responses: List[Any]):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params: Optional[Dict[str, Any]] = None):
        self.calls.append({"url": url, "params": dict(params or {})})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _page(n: int, total: int, start: int = 0) -> _FakeResponse:
    results = [{"id": f"https://openalex.org/W{start + i}"} for i in range(n)]
    return _FakeResponse(200, {"results": results, "meta": {"count": total}})


@pytest.fixture
def client():
    return OpenAlexClient(base_url="https://api.example.test", request_interval=0)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("A5023888391", "A5023888391"),
        ("a5023888391", "A5023888391"),
        ("5023888391", "A5023888391"),
        ("https://openalex.org/A5023888391", "A5023888391"),
    ],
)
def test_normalize_author_id(raw, expected):
    assert OpenAlexClient.normalize_author_id(raw) == expected


def test_normalize_author_id_rejects_empty():
    with pytest.raises(ValueError):
        OpenAlexClient.normalize_author_id("  ")


@pytest.mark.asyncio
async def test_fetch_entity_hits_author_endpoint(client):
    session = _FakeSession([_FakeResponse(200, {"id": "https://openalex.org/A1", "display_name": "Jane"})])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        data = await client.fetch_entity("A1")

    assert data["display_name"] == "Jane"
    assert session.calls[0]["url"] == "https://api.example.test/authors/A1"


@pytest.mark.asyncio
async def test_fetch_entity_404_raises_not_found(client):
    session = _FakeSession([_FakeResponse(404)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(CatalogNotFoundError) as exc_info:
            await client.fetch_entity("A404")

    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_fetch_entity_500_raises_http_error(client):
    session = _FakeSession([_FakeResponse(500)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(CatalogHTTPError) as exc_info:
            await client.fetch_entity("A1")

    assert not isinstance(exc_info.value, CatalogNotFoundError)
    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_transport_error_is_wrapped(client):
    session = _FakeSession([aiohttp.ClientConnectionError("connection reset")])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(CatalogHTTPError) as exc_info:
            await client.fetch_entity("A1")

    assert exc_info.value.status is None


@pytest.mark.asyncio
async def test_mailto_is_sent_for_polite_pool():
    client = OpenAlexClient(base_url="https://api.example.test", mailto="ops@example.org", request_interval=0)
    session = _FakeSession([_FakeResponse(200, {"id": "A1"})])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        await client.fetch_entity("A1")

    assert session.calls[0]["params"]["mailto"] == "ops@example.org"


@pytest.mark.asyncio
async def test_paginates_until_reported_total(client):
    session = _FakeSession([_page(200, 450), _page(200, 450, 200), _page(50, 450, 400)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        data = await client.fetch_works_paginated("A1")

    assert len(session.calls) == 3
    assert len(data["results"]) == 450
    assert data["meta"]["count"] == 450
    first = session.calls[0]["params"]
    assert first["filter"] == "author.id:A1"
    assert first["per-page"] == 200
    assert first["sort"] == "cited_by_count:desc"
    assert [c["params"]["page"] for c in session.calls] == [1, 2, 3]


@pytest.mark.asyncio
async def test_stops_on_empty_page_before_total(client):
    session = _FakeSession([_page(200, 450), _page(200, 450, 200), _page(0, 450)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        data = await client.fetch_works_paginated("A1")

    assert len(session.calls) == 3
    assert len(data["results"]) == 400


@pytest.mark.asyncio
async def test_zero_total_makes_single_request(client):
    session = _FakeSession([_page(0, 0)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        data = await client.fetch_works_paginated("A1")

    assert len(session.calls) == 1
    assert data == {"results": [], "meta": {"count": 0}}


@pytest.mark.asyncio
async def test_failing_page_aborts_fetch(client):
    session = _FakeSession([_page(200, 450), _FakeResponse(502)])
    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(CatalogHTTPError):
            await client.fetch_works_paginated("A1")


@pytest.mark.asyncio
async def test_close_without_session_is_noop(client):
    await client.close()
    assert client._session is None
