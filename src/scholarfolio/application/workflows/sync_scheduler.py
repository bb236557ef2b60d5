# src/scholarfolio/application/workflows/sync_scheduler.py
"""
Periodic refresh of every active tenant's cached catalog data.

One asyncio timer task fires a run every ``interval_hours``. A run walks the
active tenants strictly in sequence, syncs those whose data is stale, and
records one ``SyncLogEntry`` per tenant in the shared ``SyncLogBuffer``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Set

from scholarfolio.application.ports.catalog_client_port import CatalogClientPort
from scholarfolio.application.ports.site_store_port import SiteStorePort
from scholarfolio.application.services.catalog_normalizer import (
    build_affiliation_rows,
    build_publication_rows,
    build_topic_rows,
)
from scholarfolio.application.services.sync_log import SyncLogBuffer
from scholarfolio.domain.catalog import CatalogDataType, CollectionKind
from scholarfolio.domain.errors import CatalogNotFoundError, SyncConfigurationError
from scholarfolio.domain.sync import SyncLogEntry, SyncStats, SyncStatus
from scholarfolio.domain.tenant import SyncFrequency, Tenant
from scholarfolio.utils.logging_config import LogFiles, Logger, trace_context

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_HOURS = 1.0
DEFAULT_INITIAL_DELAY_S = 60.0
DEFAULT_TENANT_DELAY_S = 2.0

NO_CATALOG_ID_MESSAGE = "no catalog id configured"
IN_PROGRESS_MESSAGE = "sync already in progress"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_due_for_sync(
    last_synced_at: Optional[datetime],
    frequency: SyncFrequency | str,
    now: Optional[datetime] = None,
) -> bool:
    """True when never synced, or when at least one interval has elapsed."""
    if last_synced_at is None:
        return True
    now = now or _utcnow()
    if last_synced_at.tzinfo is None:
        last_synced_at = last_synced_at.replace(tzinfo=timezone.utc)
    return now - last_synced_at >= SyncFrequency.parse(frequency).interval


class SyncScheduler:
    def __init__(
        self,
        store: SiteStorePort,
        client: CatalogClientPort,
        *,
        log_buffer: Optional[SyncLogBuffer] = None,
        tenant_delay_s: float = DEFAULT_TENANT_DELAY_S,
        initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.client = client
        self.log_buffer = log_buffer if log_buffer is not None else SyncLogBuffer()
        self.tenant_delay_s = tenant_delay_s
        self.initial_delay_s = initial_delay_s
        self.interval_hours: Optional[float] = None
        self._clock = clock or _utcnow
        self._sleep = sleep
        self._timer_task: Optional[asyncio.Task] = None
        self._run_tasks: Set[asyncio.Task] = set()
        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()

    # --- lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self, interval_hours: float = DEFAULT_INTERVAL_HOURS) -> None:
        """Start the repeating timer. Must be called from a running event loop."""
        if self.is_running:
            logger.info("Sync scheduler already running")
            return
        if interval_hours <= 0:
            raise ValueError("interval_hours must be positive")
        self.interval_hours = interval_hours
        self._timer_task = asyncio.get_running_loop().create_task(self._timer_loop())
        logger.info(
            f"Sync scheduler started: first run in {self.initial_delay_s}s, "
            f"then every {interval_hours}h"
        )
        Logger.info(f"Sync scheduler started (interval={interval_hours}h)", file=LogFiles.SYNC)

    def stop(self) -> None:
        """Cancel the timer. Runs already in flight are left to finish."""
        if self._timer_task is None:
            return
        self._timer_task.cancel()
        self._timer_task = None
        logger.info("Sync scheduler stopped")
        Logger.info("Sync scheduler stopped", file=LogFiles.SYNC)

    async def _timer_loop(self) -> None:
        await self._sleep(self.initial_delay_s)
        interval_s = timedelta(hours=self.interval_hours or DEFAULT_INTERVAL_HOURS).total_seconds()
        while True:
            task = asyncio.get_running_loop().create_task(self.run_scheduled_sync())
            self._run_tasks.add(task)
            task.add_done_callback(self._run_tasks.discard)
            await self._sleep(interval_s)

    def get_logs(self):
        return self.log_buffer.entries()

    # --- runs ---

    async def run_scheduled_sync(self) -> SyncStats:
        stats = SyncStats()
        with trace_context("sync") as trace_id:
            logger.info(f"Scheduled sync run starting ({trace_id})")
            Logger.info("Scheduled sync run starting", file=LogFiles.SYNC)
            try:
                tenants = self.store.list_active_tenants()
            except Exception as e:
                logger.exception(f"Scheduled sync run aborted: {e}")
                Logger.error(f"Scheduled sync run aborted: {e}", file=LogFiles.ERROR)
                return stats

            for tenant in tenants:
                try:
                    entry = await self._sync_if_due(tenant)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    entry = self._failed(tenant, "", tenant.sync_frequency, "profile lookup", e)
                self.log_buffer.add(entry)
                stats.record(entry.status)
                await self._sleep(self.tenant_delay_s)

            summary = (
                f"Scheduled sync finished: {stats.synced} synced, "
                f"{stats.skipped} skipped, {stats.errors} errors"
            )
            logger.info(summary)
            Logger.info(summary, file=LogFiles.SYNC)
        return stats

    async def _sync_if_due(self, tenant: Tenant) -> SyncLogEntry:
        frequency = tenant.sync_frequency
        try:
            profile, catalog_id = self._catalog_target(tenant)
        except SyncConfigurationError as e:
            return self._entry(tenant, "", SyncStatus.SKIPPED, str(e))

        if not is_due_for_sync(profile.last_synced_at, frequency, self._clock()):
            last = profile.last_synced_at.isoformat() if profile.last_synced_at else "never"
            return self._entry(
                tenant,
                catalog_id,
                SyncStatus.SKIPPED,
                f"not due for {frequency.value} sync (last synced {last})",
                last_synced_at=profile.last_synced_at,
            )
        return await self.sync_one(tenant, catalog_id, frequency)

    def _catalog_target(self, tenant: Tenant):
        profile = self.store.get_researcher_profile_by_tenant(tenant.id)
        if profile is None or not (profile.catalog_id or "").strip():
            raise SyncConfigurationError(NO_CATALOG_ID_MESSAGE)
        return profile, profile.catalog_id.strip()

    async def sync_one(
        self,
        tenant: Tenant,
        catalog_id: str,
        frequency: Optional[SyncFrequency] = None,
    ) -> SyncLogEntry:
        """
        Refresh one tenant's cache from the catalog.

        The researcher record is written before works are fetched, so a works
        failure leaves topics and affiliations refreshed (a partial sync).
        """
        frequency = frequency or tenant.sync_frequency
        if not self._acquire(tenant.id):
            return self._entry(tenant, catalog_id, SyncStatus.SKIPPED, IN_PROGRESS_MESSAGE)
        try:
            return await self._sync_locked(tenant, catalog_id, frequency)
        finally:
            self._release(tenant.id)

    async def _sync_locked(
        self, tenant: Tenant, catalog_id: str, frequency: SyncFrequency
    ) -> SyncLogEntry:
        try:
            researcher = await self.client.fetch_entity(catalog_id)
        except CatalogNotFoundError:
            Logger.warning(f"Researcher {catalog_id} not found upstream", file=LogFiles.SYNC)
            return self._entry(
                tenant, catalog_id, SyncStatus.SKIPPED, "researcher not found in catalog",
                frequency=frequency,
            )
        except Exception as e:
            return self._failed(tenant, catalog_id, frequency, "researcher fetch", e)

        try:
            self.store.upsert_cached_blob(catalog_id, CatalogDataType.RESEARCHER, researcher)
            self.store.replace_collection_for_id(
                CollectionKind.TOPICS, catalog_id, build_topic_rows(catalog_id, researcher)
            )
            self.store.replace_collection_for_id(
                CollectionKind.AFFILIATIONS, catalog_id, build_affiliation_rows(catalog_id, researcher)
            )
        except Exception as e:
            return self._failed(tenant, catalog_id, frequency, "researcher write", e)

        try:
            works = await self.client.fetch_works_paginated(catalog_id)
        except CatalogNotFoundError:
            Logger.warning(f"Works for {catalog_id} not found upstream", file=LogFiles.SYNC)
            return self._entry(
                tenant, catalog_id, SyncStatus.SKIPPED, "works not found in catalog",
                frequency=frequency,
            )
        except Exception as e:
            return self._failed(tenant, catalog_id, frequency, "works fetch", e)

        try:
            publications = build_publication_rows(catalog_id, works.get("results") or [])
            self.store.replace_collection_for_id(
                CollectionKind.PUBLICATIONS, catalog_id, publications
            )
            self.store.upsert_cached_blob(catalog_id, CatalogDataType.WORKS, works)

            synced_at = self._clock()
            self.store.update_tenant_sync(tenant.id, synced_at)
            profile = self.store.get_researcher_profile_by_tenant(tenant.id)
            if profile is not None:
                self.store.update_researcher_profile_sync(profile.id, synced_at)
        except Exception as e:
            return self._failed(tenant, catalog_id, frequency, "works write", e)

        message = f"synced {len(publications)} publications"
        Logger.info(f"Tenant {tenant.id} ({catalog_id}): {message}", file=LogFiles.SYNC)
        return self._entry(
            tenant, catalog_id, SyncStatus.SUCCESS, message,
            frequency=frequency, last_synced_at=synced_at,
        )

    async def force_sync_tenant(self, tenant_id: str) -> Optional[SyncLogEntry]:
        """Sync one tenant now, ignoring staleness. Returns None for an unknown tenant."""
        tenant = self.store.get_tenant(tenant_id)
        if tenant is None:
            return None

        with trace_context("force"):
            try:
                _, catalog_id = self._catalog_target(tenant)
            except SyncConfigurationError as e:
                entry = self._entry(tenant, "", SyncStatus.ERROR, str(e))
            else:
                entry = await self.sync_one(tenant, catalog_id, tenant.sync_frequency)
            self.log_buffer.add(entry)
            Logger.info(
                f"Forced sync of tenant {tenant_id}: {entry.status.value} {entry.message}",
                file=LogFiles.SYNC,
            )
        return entry

    # --- helpers ---

    def _acquire(self, tenant_id: str) -> bool:
        with self._in_flight_lock:
            if tenant_id in self._in_flight:
                return False
            self._in_flight.add(tenant_id)
            return True

    def _release(self, tenant_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(tenant_id)

    def _failed(
        self, tenant: Tenant, catalog_id: str, frequency: SyncFrequency, stage: str, exc: Exception
    ) -> SyncLogEntry:
        logger.warning(f"Sync of tenant {tenant.id} failed during {stage}: {exc}")
        Logger.error(f"Tenant {tenant.id} ({catalog_id}) {stage} failed: {exc}", file=LogFiles.ERROR)
        return self._entry(tenant, catalog_id, SyncStatus.ERROR, str(exc), frequency=frequency)

    @staticmethod
    def _entry(
        tenant: Tenant,
        catalog_id: str,
        status: SyncStatus,
        message: str,
        *,
        frequency: Optional[SyncFrequency] = None,
        last_synced_at: Optional[datetime] = None,
    ) -> SyncLogEntry:
        return SyncLogEntry(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            catalog_id=catalog_id,
            sync_frequency=frequency or tenant.sync_frequency,
            status=status,
            message=message,
            last_synced_at=last_synced_at,
        )


def make_default_scheduler(
    *,
    settings=None,
    store: Optional[SiteStorePort] = None,
    log_buffer: Optional[SyncLogBuffer] = None,
) -> SyncScheduler:
    from scholarfolio.config import SyncSettings
    from scholarfolio.infrastructure.connectors.openalex_client import OpenAlexClient
    from scholarfolio.infrastructure.stores.site_store import SiteStore

    settings = settings or SyncSettings.from_env()
    client = OpenAlexClient(
        base_url=settings.openalex_base_url,
        mailto=settings.openalex_mailto or None,
        timeout_s=settings.openalex_timeout_s,
        request_interval=settings.openalex_request_interval_s,
    )
    return SyncScheduler(
        store if store is not None else SiteStore(),
        client,
        log_buffer=log_buffer,
        tenant_delay_s=settings.tenant_delay_s,
        initial_delay_s=settings.initial_delay_s,
    )
