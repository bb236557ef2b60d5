from __future__ import annotations

import os
from typing import Any, Dict, List

from arq import cron
from arq.connections import RedisSettings

from scholarfolio.application.workflows.sync_scheduler import (
    SyncScheduler,
    make_default_scheduler,
)
from scholarfolio.utils.logging_config import LogFiles, Logger


def _redis_settings() -> RedisSettings:
    return RedisSettings(
        host=os.getenv("SCHOLARFOLIO_REDIS_HOST", "127.0.0.1"),
        port=int(os.getenv("SCHOLARFOLIO_REDIS_PORT", "6379")),
        database=int(os.getenv("SCHOLARFOLIO_REDIS_DB", "0")),
        password=os.getenv("SCHOLARFOLIO_REDIS_PASSWORD") or None,
    )


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y")


def _job_timeout() -> int:
    # The fleet sweep pauses between tenants, so it outlives arq's 300s default
    return int(os.getenv("SCHOLARFOLIO_SYNC_JOB_TIMEOUT", "3600"))


def _scheduler(ctx) -> SyncScheduler:
    # One scheduler per worker process so the log buffer and tenant locks are shared
    scheduler = ctx.get("scheduler")
    if scheduler is None:
        scheduler = ctx["scheduler"] = make_default_scheduler()
    return scheduler


async def startup(ctx) -> None:
    ctx["scheduler"] = make_default_scheduler()
    Logger.info("arq worker started", file=LogFiles.SYNC)


async def shutdown(ctx) -> None:
    scheduler = ctx.get("scheduler")
    if scheduler is not None:
        await scheduler.client.close()
    Logger.info("arq worker stopped", file=LogFiles.SYNC)


async def run_scheduled_sync_job(ctx) -> Dict[str, Any]:
    """Cron entrypoint: sync every active tenant that is due."""
    stats = await _scheduler(ctx).run_scheduled_sync()
    return {"status": "ok", **stats.to_dict()}


async def force_sync_tenant_job(ctx, tenant_id: str) -> Dict[str, Any]:
    """Sync a single tenant now, ignoring staleness."""
    entry = await _scheduler(ctx).force_sync_tenant(tenant_id)
    if entry is None:
        return {"status": "not_found", "tenant_id": tenant_id}
    return {"status": entry.status.value, "entry": entry.to_dict()}


def _build_sync_cron_jobs():
    """
    Build the fleet sync cron job.

    Fires at ``SCHOLARFOLIO_SYNC_CRON_MINUTE`` past every hour by default;
    ``SCHOLARFOLIO_SYNC_CRON_HOURS`` narrows it to a comma-separated hour list.
    """
    if not _env_flag("SCHOLARFOLIO_SYNC_CRON_ENABLED", "true"):
        return []

    minute = int(os.getenv("SCHOLARFOLIO_SYNC_CRON_MINUTE", "0"))
    hours_raw = os.getenv("SCHOLARFOLIO_SYNC_CRON_HOURS", "")
    hours: List[int] = [int(h) for h in hours_raw.split(",") if h.strip()]
    run_at_startup = _env_flag("SCHOLARFOLIO_SYNC_RUN_AT_STARTUP")

    kwargs: Dict[str, Any] = {
        "minute": minute,
        "run_at_startup": run_at_startup,
        "timeout": _job_timeout(),
    }
    if hours:
        kwargs["hour"] = set(hours)
    return [cron(run_scheduled_sync_job, **kwargs)]


class WorkerSettings:
    functions = [
        run_scheduled_sync_job,
        force_sync_tenant_job,
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    job_timeout = _job_timeout()

    cron_jobs = _build_sync_cron_jobs()
