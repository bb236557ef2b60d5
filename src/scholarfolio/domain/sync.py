# src/scholarfolio/domain/sync.py
"""Sync outcome models: per-tenant log entries and per-run aggregate counts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from scholarfolio.domain.tenant import SyncFrequency


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class SyncLogEntry:
    """Outcome of one tenant's sync attempt."""

    tenant_id: str
    tenant_name: str
    catalog_id: str
    sync_frequency: SyncFrequency
    status: SyncStatus
    message: str = ""
    last_synced_at: Optional[datetime] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "tenant_name": self.tenant_name,
            "catalog_id": self.catalog_id,
            "sync_frequency": self.sync_frequency.value,
            "status": self.status.value,
            "message": self.message,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SyncStats:
    """Aggregate counts for one scheduled run."""

    synced: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, status: SyncStatus) -> None:
        if status == SyncStatus.SUCCESS:
            self.synced += 1
        elif status == SyncStatus.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, int]:
        return {"synced": self.synced, "skipped": self.skipped, "errors": self.errors}
