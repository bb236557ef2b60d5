# src/scholarfolio/api/routes/site.py
"""
Site API Routes.

Read side of a hosted portfolio:
- Resolved site context for the current hostname
- Cached researcher topics, affiliations and publications (tenant sites only)
- Plan catalogue (marketing site only)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from scholarfolio.api.site_context import get_site, require_marketing_site, require_tenant
from scholarfolio.api.state import get_site_store
from scholarfolio.domain.catalog import CollectionKind
from scholarfolio.domain.site import SiteContext
from scholarfolio.domain.tenant import PlanType, SyncFrequency

router = APIRouter()


class SiteResponse(BaseModel):
    hostname: str
    is_marketing_site: bool
    tenant: Optional[Dict[str, Any]] = None
    domain: Optional[Dict[str, Any]] = None


class PortfolioResponse(BaseModel):
    tenant_id: str
    catalog_id: Optional[str] = None
    display_name: Optional[str] = None
    last_synced_at: Optional[str] = None
    topics: List[Dict[str, Any]] = []
    affiliations: List[Dict[str, Any]] = []
    publications: List[Dict[str, Any]] = []


class PlanInfo(BaseModel):
    plan: str
    sync_frequency: str


@router.get("/site", response_model=SiteResponse)
async def current_site(request: Request):
    """Report what the request hostname resolved to."""
    return SiteResponse(**get_site(request).to_dict())


@router.get("/site/portfolio", response_model=PortfolioResponse)
async def portfolio(site: SiteContext = Depends(require_tenant)):
    """Cached catalog data of the tenant that owns this hostname."""
    store = get_site_store()
    profile = store.get_researcher_profile_by_tenant(site.tenant.id)
    if profile is None or not profile.catalog_id:
        return PortfolioResponse(tenant_id=site.tenant.id)

    catalog_id = profile.catalog_id
    return PortfolioResponse(
        tenant_id=site.tenant.id,
        catalog_id=catalog_id,
        display_name=profile.display_name,
        last_synced_at=profile.last_synced_at.isoformat() if profile.last_synced_at else None,
        topics=[r.to_dict() for r in store.list_collection(CollectionKind.TOPICS, catalog_id)],
        affiliations=[
            r.to_dict() for r in store.list_collection(CollectionKind.AFFILIATIONS, catalog_id)
        ],
        publications=[
            r.to_dict() for r in store.list_collection(CollectionKind.PUBLICATIONS, catalog_id)
        ],
    )


@router.get("/site/plans", response_model=List[PlanInfo])
async def plans(site: SiteContext = Depends(require_marketing_site)):
    """Available plans and the refresh cadence each one gets."""
    return [
        PlanInfo(plan=plan.value, sync_frequency=SyncFrequency.for_plan(plan).value)
        for plan in PlanType
    ]
