# src/scholarfolio/application/ports/site_store_port.py
"""
Site store port interface.

The narrow read/write contract the sync engine and the domain resolver need
from persistent storage.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from scholarfolio.domain.catalog import CatalogDataType, CollectionKind
from scholarfolio.domain.tenant import Domain, ResearcherProfile, Tenant


@runtime_checkable
class SiteStorePort(Protocol):
    """Abstract interface for tenant lookup and catalog cache writes."""

    def get_domain_by_hostname(self, hostname: str) -> Optional[Domain]:
        ...

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        ...

    def get_researcher_profile_by_tenant(self, tenant_id: str) -> Optional[ResearcherProfile]:
        ...

    def list_active_tenants(self) -> List[Tenant]:
        ...

    def update_tenant_sync(self, tenant_id: str, synced_at: datetime) -> None:
        """Set the tenant's last_sync_at. Never touches status."""
        ...

    def update_researcher_profile_sync(self, profile_id: str, synced_at: datetime) -> None:
        ...

    def upsert_cached_blob(
        self, catalog_id: str, data_type: CatalogDataType, payload: Dict[str, Any]
    ) -> None:
        """Insert or replace the single blob stored under (catalog_id, data_type)."""
        ...

    def replace_collection_for_id(
        self, kind: CollectionKind, catalog_id: str, rows: Sequence[Any]
    ) -> int:
        """
        Delete every row of ``kind`` for ``catalog_id`` and insert ``rows``.

        Returns:
            Number of rows inserted
        """
        ...
