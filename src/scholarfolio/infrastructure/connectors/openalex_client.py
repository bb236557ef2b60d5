# src/scholarfolio/infrastructure/connectors/openalex_client.py
"""
OpenAlex catalog client.

Read-only access to researcher records and their works.
API documentation: https://docs.openalex.org/
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from scholarfolio.domain.errors import CatalogHTTPError, CatalogNotFoundError

logger = logging.getLogger(__name__)


class OpenAlexClient:
    """
    Async OpenAlex client.

    Rate limit: 10 req/s (polite pool with mailto), 100K/day.
    Requests are never retried here; the next scheduled sync is the retry.
    """

    DEFAULT_BASE_URL = "https://api.openalex.org"
    PAGE_SIZE = 200  # API max per page
    WORKS_SORT = "cited_by_count:desc"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        mailto: Optional[str] = None,
        timeout_s: float = 30.0,
        request_interval: float = 0.1,
    ):
        self.base_url = base_url.rstrip("/")
        self.mailto = mailto or None  # For polite pool
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)
        self.request_interval = request_interval
        self._session: Optional[aiohttp.ClientSession] = None
        self._last_request_time: float = 0.0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": "scholarfolio/0.1"},
            )
        return self._session

    async def _rate_limit(self) -> None:
        """Enforce the minimum interval between requests."""
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if elapsed < self.request_interval:
            await asyncio.sleep(self.request_interval - elapsed)
        self._last_request_time = time.monotonic()

    @staticmethod
    def normalize_author_id(catalog_id: str) -> str:
        """``https://openalex.org/A123`` / ``123`` / ``a123`` -> ``A123``."""
        text = str(catalog_id or "").strip()
        marker = "openalex.org/"
        idx = text.lower().find(marker)
        if idx >= 0:
            text = text[idx + len(marker) :]
        text = text.strip().strip("/")
        if not text:
            raise ValueError("catalog id is required")
        if text[0].upper() != "A":
            text = f"A{text}"
        return text[0].upper() + text[1:]

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if self.mailto:
            params = {**(params or {}), "mailto": self.mailto}

        await self._rate_limit()
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as resp:
                if resp.status == 404:
                    raise CatalogNotFoundError(f"OpenAlex API error: 404 for {url}", url=url)
                if resp.status < 200 or resp.status >= 300:
                    raise CatalogHTTPError(
                        f"OpenAlex API error: {resp.status} for {url}",
                        status=resp.status,
                        url=url,
                    )
                payload = await resp.json()
        except CatalogHTTPError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CatalogHTTPError(f"OpenAlex request failed: {e}", url=url) from e

        if not isinstance(payload, dict):
            raise CatalogHTTPError(f"OpenAlex returned a non-object payload for {url}", url=url)
        return payload

    async def fetch_entity(self, catalog_id: str) -> Dict[str, Any]:
        """Fetch a single researcher record."""
        author_id = self.normalize_author_id(catalog_id)
        return await self._get_json(f"{self.base_url}/authors/{author_id}")

    async def fetch_works_paginated(self, catalog_id: str) -> Dict[str, Any]:
        """
        Fetch every work of a researcher.

        Stops once the accumulated count reaches the reported total, or as soon
        as a page comes back empty (reported totals can be approximate). Any
        failing page aborts the whole fetch.
        """
        author_id = self.normalize_author_id(catalog_id)
        url = f"{self.base_url}/works"
        results: List[Dict[str, Any]] = []
        total_count = 0
        page = 1

        while True:
            params = {
                "filter": f"author.id:{author_id}",
                "per-page": self.PAGE_SIZE,
                "page": page,
                "sort": self.WORKS_SORT,
            }
            data = await self._get_json(url, params=params)
            page_results = data.get("results") or []
            results.extend(page_results)
            total_count = int((data.get("meta") or {}).get("count") or 0)

            logger.info(
                f"Fetched {len(results)} of {total_count} works for {author_id} (page {page})"
            )
            page += 1

            if len(results) >= total_count or not page_results:
                break

        return {"results": results, "meta": {"count": total_count}}

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "OpenAlexClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
