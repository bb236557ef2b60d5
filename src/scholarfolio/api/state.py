"""Lazy-initialized process-wide singletons shared by the API routes."""

from __future__ import annotations

from typing import Optional

from scholarfolio.application.services.domain_resolver import DomainResolver
from scholarfolio.application.workflows.sync_scheduler import SyncScheduler, make_default_scheduler
from scholarfolio.config import SyncSettings
from scholarfolio.infrastructure.stores.site_store import SiteStore

_settings: Optional[SyncSettings] = None
_site_store: Optional[SiteStore] = None
_scheduler: Optional[SyncScheduler] = None


def get_settings() -> SyncSettings:
    global _settings
    if _settings is None:
        _settings = SyncSettings.from_env()
    return _settings


def get_site_store() -> SiteStore:
    """Lazy initialization of the site store."""
    global _site_store
    if _site_store is None:
        _site_store = SiteStore()
    return _site_store


def get_scheduler() -> SyncScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = make_default_scheduler(settings=get_settings(), store=get_site_store())
    return _scheduler


def get_resolver() -> DomainResolver:
    settings = get_settings()
    return DomainResolver(
        get_site_store(),
        marketing_domains=settings.marketing_domains,
        preview_suffixes=settings.preview_suffixes,
    )


def configure(
    *,
    settings: Optional[SyncSettings] = None,
    site_store: Optional[SiteStore] = None,
    scheduler: Optional[SyncScheduler] = None,
) -> None:
    """Replace the singletons (used by tests and embedding applications)."""
    global _settings, _site_store, _scheduler
    _settings = settings
    _site_store = site_store
    _scheduler = scheduler
