# src/scholarfolio/api/routes/sync_admin.py
"""
Sync operator API Routes.

Provides endpoints for:
- Reading the recent sync log
- Running a whole-fleet sync on demand
- Forcing a single tenant's sync
- Scheduler status
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from scholarfolio.api.state import get_scheduler
from scholarfolio.utils.logging_config import LogFiles, Logger, clear_trace_id, set_trace_id

router = APIRouter()


class SyncLogsResponse(BaseModel):
    entries: List[Dict[str, Any]]
    total: int


class SyncRunResponse(BaseModel):
    synced: int
    skipped: int
    errors: int


class SyncStatusResponse(BaseModel):
    running: bool
    interval_hours: Optional[float] = None
    buffered_entries: int


@router.get("/admin/sync/logs", response_model=SyncLogsResponse)
async def sync_logs(limit: int = Query(100, ge=1, le=100)):
    """Recent per-tenant sync outcomes, newest first."""
    entries = get_scheduler().get_logs()
    return SyncLogsResponse(entries=[e.to_dict() for e in entries[:limit]], total=len(entries))


@router.post("/admin/sync/run", response_model=SyncRunResponse)
async def run_sync():
    """Run a scheduled-style sync over every active tenant now."""
    set_trace_id()
    try:
        Logger.info("Manual fleet sync requested", file=LogFiles.API)
        stats = await get_scheduler().run_scheduled_sync()
        return SyncRunResponse(**stats.to_dict())
    finally:
        clear_trace_id()


@router.post("/admin/sync/tenants/{tenant_id}")
async def force_tenant_sync(tenant_id: str):
    """Sync one tenant immediately, ignoring its refresh cadence."""
    set_trace_id()
    try:
        Logger.info(f"Forced sync requested for tenant {tenant_id}", file=LogFiles.API)
        entry = await get_scheduler().force_sync_tenant(tenant_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Tenant not found")
        return entry.to_dict()
    finally:
        clear_trace_id()


@router.get("/admin/sync/status", response_model=SyncStatusResponse)
async def sync_status():
    scheduler = get_scheduler()
    return SyncStatusResponse(
        running=scheduler.is_running,
        interval_hours=scheduler.interval_hours,
        buffered_entries=len(scheduler.log_buffer),
    )
