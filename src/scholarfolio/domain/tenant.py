# src/scholarfolio/domain/tenant.py
"""
Tenant domain models.

Contains the identity side of a hosted portfolio site:
- Tenant: a hosted researcher/institution account
- Domain: a hostname owned by a tenant
- ResearcherProfile: join point between a tenant and its catalog id
- SyncFrequency: plan-driven staleness tier
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional


class TenantStatus(str, Enum):
    """Lifecycle status of a tenant."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"

    @property
    def is_deactivated(self) -> bool:
        return self in (TenantStatus.SUSPENDED, TenantStatus.CANCELLED)


class PlanType(str, Enum):
    """Pricing tier."""

    STARTER = "starter"
    PROFESSIONAL = "professional"
    INSTITUTION = "institution"


class SyncFrequency(str, Enum):
    """How often a tenant's cached catalog data is refreshed."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def interval(self) -> timedelta:
        return _SYNC_INTERVALS[self]

    @classmethod
    def parse(cls, value: Any) -> "SyncFrequency":
        """Parse a stored value; unknown or empty values fall back to monthly."""
        if isinstance(value, SyncFrequency):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            return cls.MONTHLY

    @classmethod
    def for_plan(cls, plan: Any) -> "SyncFrequency":
        """Default frequency assigned when a tenant is provisioned on a plan."""
        if str(getattr(plan, "value", plan) or "").lower() == PlanType.PROFESSIONAL.value:
            return cls.WEEKLY
        return cls.MONTHLY


_SYNC_INTERVALS: Dict[SyncFrequency, timedelta] = {
    SyncFrequency.DAILY: timedelta(days=1),
    SyncFrequency.WEEKLY: timedelta(days=7),
    SyncFrequency.MONTHLY: timedelta(days=30),
}


@dataclass
class Tenant:
    id: str
    name: str
    plan: PlanType = PlanType.STARTER
    status: TenantStatus = TenantStatus.PENDING
    sync_frequency: SyncFrequency = SyncFrequency.MONTHLY
    last_sync_at: Optional[datetime] = None
    contact_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "plan": self.plan.value,
            "status": self.status.value,
            "sync_frequency": self.sync_frequency.value,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "contact_email": self.contact_email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Domain:
    id: str
    hostname: str
    tenant_id: str
    is_primary: bool = False
    is_subdomain: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hostname": self.hostname,
            "tenant_id": self.tenant_id,
            "is_primary": self.is_primary,
            "is_subdomain": self.is_subdomain,
        }


@dataclass
class ResearcherProfile:
    id: str
    tenant_id: str
    catalog_id: Optional[str] = None
    display_name: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "catalog_id": self.catalog_id,
            "display_name": self.display_name,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }
