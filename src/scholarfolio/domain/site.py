# src/scholarfolio/domain/site.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from scholarfolio.domain.tenant import Domain, Tenant


@dataclass(frozen=True)
class SiteContext:
    """What an inbound hostname resolved to: a tenant site or the marketing site."""

    hostname: str
    tenant: Optional[Tenant] = None
    domain: Optional[Domain] = None

    @property
    def is_marketing_site(self) -> bool:
        return self.tenant is None

    @classmethod
    def marketing(cls, hostname: str) -> "SiteContext":
        return cls(hostname=hostname)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "is_marketing_site": self.is_marketing_site,
            "tenant": self.tenant.to_dict() if self.tenant else None,
            "domain": self.domain.to_dict() if self.domain else None,
        }
