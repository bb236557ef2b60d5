# src/scholarfolio/application/ports/catalog_client_port.py
"""
Catalog client port interface.

Defines the read-only contract against the external bibliographic catalog.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class CatalogClientPort(Protocol):
    """Abstract interface for the external catalog."""

    async def fetch_entity(self, catalog_id: str) -> Dict[str, Any]:
        """
        Fetch a single researcher record.

        Raises:
            CatalogNotFoundError: the catalog answered 404
            CatalogHTTPError: any other non-2xx answer or transport failure
        """
        ...

    async def fetch_works_paginated(self, catalog_id: str) -> Dict[str, Any]:
        """
        Fetch every work of a researcher, page by page.

        Returns:
            ``{"results": [...], "meta": {"count": <reported total>}}``
        """
        ...

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""
        ...
