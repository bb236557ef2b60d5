"""
Per-request site resolution.

``install_site_middleware`` attaches the resolved ``SiteContext`` to
``request.state.site``; route handlers guard on it with the dependencies below.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse

from scholarfolio.application.services.domain_resolver import DomainResolver, normalize_hostname
from scholarfolio.domain.site import SiteContext
from scholarfolio.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)


class MarketingSiteRedirect(Exception):
    """Raised by ``require_marketing_site`` when a tenant host hits a marketing-only route."""


def request_host(request: Request) -> Optional[str]:
    """Client-facing host; the first ``X-Forwarded-Host`` entry wins over ``Host``."""
    forwarded = request.headers.get("x-forwarded-host") or ""
    first = forwarded.split(",", 1)[0].strip()
    return first or request.headers.get("host")


def install_site_middleware(app: FastAPI, resolver_factory: Callable[[], DomainResolver]) -> None:
    @app.middleware("http")
    async def site_resolution_middleware(request: Request, call_next):
        host = request_host(request)
        try:
            request.state.site = resolver_factory().resolve(host)
        except Exception as e:
            logger.exception(f"Site resolution failed for {host!r}: {e}")
            Logger.error(f"Site resolution failed for {host!r}: {e}", file=LogFiles.ERROR)
            request.state.site = SiteContext.marketing(normalize_hostname(host))
        return await call_next(request)

    @app.exception_handler(MarketingSiteRedirect)
    async def _redirect_to_tenant_home(request: Request, exc: MarketingSiteRedirect):
        return RedirectResponse(url="/", status_code=307)


def get_site(request: Request) -> SiteContext:
    site: Optional[SiteContext] = getattr(request.state, "site", None)
    return site or SiteContext.marketing("")


def require_tenant(request: Request) -> SiteContext:
    """Dependency for tenant-only routes: 404 on the marketing site."""
    site = get_site(request)
    if site.is_marketing_site:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


def require_marketing_site(request: Request) -> SiteContext:
    """Dependency for marketing-only routes: tenant hosts are sent to their home page."""
    site = get_site(request)
    if not site.is_marketing_site:
        raise MarketingSiteRedirect()
    return site
