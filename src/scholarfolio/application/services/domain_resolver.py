# src/scholarfolio/application/services/domain_resolver.py
"""
Hostname → tenant resolution.

Every inbound request is classified as either a tenant site or the generic
marketing site. Resolution never fails: unknown hostnames, deactivated
tenants and store errors all fall back to the marketing site.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from scholarfolio.application.ports.site_store_port import SiteStorePort
from scholarfolio.config import DEFAULT_MARKETING_DOMAINS
from scholarfolio.domain.site import SiteContext
from scholarfolio.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)


def normalize_hostname(host: Optional[str]) -> str:
    """``Example.org:8080`` -> ``example.org``."""
    text = str(host or "").strip()
    if text.startswith("["):
        # IPv6 literal, e.g. [::1]:8000
        end = text.find("]")
        text = text[1:end] if end > 0 else text
    else:
        text = text.split(":", 1)[0]
    return text.strip().rstrip(".").lower()


class DomainResolver:
    """Maps hostnames to a SiteContext using the site store."""

    def __init__(
        self,
        store: SiteStorePort,
        *,
        marketing_domains: Iterable[str] = DEFAULT_MARKETING_DOMAINS,
        preview_suffixes: Iterable[str] = (),
    ):
        self.store = store
        self.marketing_domains = frozenset(d.strip().lower() for d in marketing_domains if d)
        self.preview_suffixes = tuple(
            s if s.startswith(".") else f".{s}"
            for s in (p.strip().lower() for p in preview_suffixes)
            if s
        )

    def is_marketing_hostname(self, hostname: str) -> bool:
        if not hostname or hostname in self.marketing_domains:
            return True
        return any(hostname.endswith(suffix) for suffix in self.preview_suffixes)

    def resolve(self, host: Optional[str]) -> SiteContext:
        hostname = normalize_hostname(host)
        if self.is_marketing_hostname(hostname):
            return SiteContext.marketing(hostname)

        try:
            domain = self.store.get_domain_by_hostname(hostname)
            if domain is None:
                return SiteContext.marketing(hostname)

            tenant = self.store.get_tenant(domain.tenant_id)
            if tenant is None or tenant.status.is_deactivated:
                return SiteContext.marketing(hostname)
        except Exception as e:
            logger.warning(f"Tenant resolution failed for {hostname}: {e}")
            Logger.error(f"Tenant resolution error for {hostname}: {e}", file=LogFiles.RESOLVER)
            return SiteContext.marketing(hostname)

        return SiteContext(hostname=hostname, tenant=tenant, domain=domain)


def resolve_site(host: Optional[str], store: SiteStorePort, **kwargs) -> SiteContext:
    """Convenience wrapper around DomainResolver(store).resolve(host)."""
    return DomainResolver(store, **kwargs).resolve(host)
