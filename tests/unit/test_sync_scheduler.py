from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from scholarfolio.application.services.sync_log import SyncLogBuffer
from scholarfolio.application.workflows.sync_scheduler import SyncScheduler
from scholarfolio.domain.catalog import CatalogDataType, CollectionKind
from scholarfolio.domain.errors import CatalogHTTPError, CatalogNotFoundError
from scholarfolio.domain.sync import SyncStatus
from scholarfolio.domain.tenant import SyncFrequency, TenantStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

RESEARCHER = {
    "id": "https://openalex.org/A1",
    "display_name": "Jane Doe",
    "topics": [{"id": "T1", "display_name": "Protein Folding", "count": 3}],
    "affiliations": [
        {"institution": {"id": "I1", "display_name": "Uni"}, "years": [2019, 2015, 2017]}
    ],
}

WORKS = {
    "results": [
        {"id": "W1", "title": "First", "cited_by_count": 10},
        {"id": "W2", "title": "Second", "cited_by_count": 5},
    ],
    "meta": {"count": 2},
}


class _FakeCatalog:
    """Per-catalog-id canned behaviour: a payload or an exception to raise."""

    def __init__(self):
        self.entities: Dict[str, Any] = {}
        self.works: Dict[str, Any] = {}
        self.calls: List[str] = []

    async def fetch_entity(self, catalog_id: str):
        self.calls.append(f"entity:{catalog_id}")
        result = self.entities.get(catalog_id, RESEARCHER)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_works_paginated(self, catalog_id: str):
        self.calls.append(f"works:{catalog_id}")
        result = self.works.get(catalog_id, WORKS)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        return None


class _SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def catalog():
    return _FakeCatalog()


@pytest.fixture
def sleeper():
    return _SleepRecorder()


@pytest.fixture
def scheduler(site_store, catalog, sleeper):
    return SyncScheduler(site_store, catalog, clock=lambda: NOW, sleep=sleeper)


def _tenant(store, name: str, catalog_id=None, frequency=SyncFrequency.WEEKLY):
    tenant = store.create_tenant(name=name, status=TenantStatus.ACTIVE, sync_frequency=frequency)
    if catalog_id is not None:
        store.upsert_researcher_profile(tenant_id=tenant.id, catalog_id=catalog_id)
    return tenant


@pytest.mark.asyncio
async def test_successful_sync_writes_cache_and_timestamps(scheduler, site_store):
    tenant = _tenant(site_store, "Jane", "A1")

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 1, "skipped": 0, "errors": 0}
    assert site_store.get_cached_blob("A1", CatalogDataType.RESEARCHER)["payload"] == RESEARCHER
    assert site_store.get_cached_blob("A1", CatalogDataType.WORKS)["payload"] == WORKS
    assert len(site_store.list_collection(CollectionKind.TOPICS, "A1")) == 1
    [affiliation] = site_store.list_collection(CollectionKind.AFFILIATIONS, "A1")
    assert (affiliation.start_year, affiliation.end_year) == (2015, 2019)
    assert [p.title for p in site_store.list_collection(CollectionKind.PUBLICATIONS, "A1")] == [
        "First",
        "Second",
    ]
    assert site_store.get_tenant(tenant.id).last_sync_at == NOW
    assert site_store.get_researcher_profile_by_tenant(tenant.id).last_synced_at == NOW

    [entry] = scheduler.get_logs()
    assert entry.status is SyncStatus.SUCCESS
    assert entry.tenant_name == "Jane"
    assert entry.sync_frequency is SyncFrequency.WEEKLY


def _cache_snapshot(store, tenant_id: str, catalog_id: str) -> Dict[str, Any]:
    snapshot: Dict[str, Any] = {
        kind.value: [row.to_dict() for row in store.list_collection(kind, catalog_id)]
        for kind in (CollectionKind.TOPICS, CollectionKind.AFFILIATIONS, CollectionKind.PUBLICATIONS)
    }
    snapshot["researcher"] = store.get_cached_blob(catalog_id, CatalogDataType.RESEARCHER)
    snapshot["works"] = store.get_cached_blob(catalog_id, CatalogDataType.WORKS)
    snapshot["last_sync_at"] = store.get_tenant(tenant_id).last_sync_at
    snapshot["last_synced_at"] = store.get_researcher_profile_by_tenant(tenant_id).last_synced_at
    return snapshot


@pytest.mark.asyncio
async def test_entity_404_is_skipped_without_mutation(site_store, catalog, sleeper):
    tenant = _tenant(site_store, "Gone", "A1")
    clock = {"now": NOW}
    scheduler = SyncScheduler(site_store, catalog, clock=lambda: clock["now"], sleep=sleeper)
    assert (await scheduler.force_sync_tenant(tenant.id)).status is SyncStatus.SUCCESS
    before = _cache_snapshot(site_store, tenant.id, "A1")
    assert before[CollectionKind.PUBLICATIONS.value] and before["researcher"] is not None

    clock["now"] = NOW + timedelta(days=30)
    catalog.entities["A1"] = CatalogNotFoundError("not found")
    catalog.calls.clear()
    entry = await scheduler.force_sync_tenant(tenant.id)

    assert entry.status is SyncStatus.SKIPPED
    assert catalog.calls == ["entity:A1"]
    assert _cache_snapshot(site_store, tenant.id, "A1") == before
    assert before["last_sync_at"] == NOW


@pytest.mark.asyncio
async def test_entity_error_is_logged_and_loop_continues(scheduler, site_store, catalog):
    _tenant(site_store, "Broken", "A500")
    _tenant(site_store, "Fine", "A1")
    catalog.entities["A500"] = CatalogHTTPError("OpenAlex API error: 500", status=500)

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 1, "skipped": 0, "errors": 1}
    by_name = {e.tenant_name: e for e in scheduler.get_logs()}
    assert by_name["Broken"].status is SyncStatus.ERROR
    assert "500" in by_name["Broken"].message
    assert by_name["Fine"].status is SyncStatus.SUCCESS


@pytest.mark.asyncio
async def test_works_failure_keeps_researcher_writes(scheduler, site_store, catalog):
    tenant = _tenant(site_store, "Partial", "A1")
    catalog.works["A1"] = CatalogHTTPError("OpenAlex API error: 503", status=503)

    stats = await scheduler.run_scheduled_sync()

    assert stats.errors == 1
    assert len(site_store.list_collection(CollectionKind.TOPICS, "A1")) == 1
    assert len(site_store.list_collection(CollectionKind.AFFILIATIONS, "A1")) == 1
    assert site_store.list_collection(CollectionKind.PUBLICATIONS, "A1") == []
    assert site_store.get_cached_blob("A1", CatalogDataType.WORKS) is None
    assert site_store.get_tenant(tenant.id).last_sync_at is None


@pytest.mark.asyncio
async def test_works_404_is_skipped(scheduler, site_store, catalog):
    _tenant(site_store, "NoWorks", "A1")
    catalog.works["A1"] = CatalogNotFoundError("not found")

    stats = await scheduler.run_scheduled_sync()

    assert stats.skipped == 1
    assert len(site_store.list_collection(CollectionKind.TOPICS, "A1")) == 1


@pytest.mark.asyncio
async def test_missing_catalog_id_is_skipped(scheduler, site_store, catalog):
    _tenant(site_store, "NoProfile")
    with_blank = _tenant(site_store, "Blank")
    site_store.upsert_researcher_profile(tenant_id=with_blank.id, catalog_id="")

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 0, "skipped": 2, "errors": 0}
    assert catalog.calls == []
    assert all(e.message == "no catalog id configured" for e in scheduler.get_logs())


@pytest.mark.asyncio
async def test_fresh_tenant_is_not_due(scheduler, site_store, catalog):
    tenant = _tenant(site_store, "Fresh", "A1", frequency=SyncFrequency.WEEKLY)
    profile = site_store.get_researcher_profile_by_tenant(tenant.id)
    site_store.update_researcher_profile_sync(profile.id, NOW - timedelta(days=6))

    stats = await scheduler.run_scheduled_sync()

    assert stats.skipped == 1
    assert catalog.calls == []
    [entry] = scheduler.get_logs()
    assert entry.last_synced_at == NOW - timedelta(days=6)


@pytest.mark.asyncio
async def test_only_active_tenants_are_considered(scheduler, site_store, catalog):
    pending = site_store.create_tenant(name="Pending")
    site_store.upsert_researcher_profile(tenant_id=pending.id, catalog_id="A9")

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 0, "skipped": 0, "errors": 0}
    assert catalog.calls == []


@pytest.mark.asyncio
async def test_second_sync_is_idempotent(site_store, catalog, sleeper):
    tenant = _tenant(site_store, "Jane", "A1", frequency=SyncFrequency.DAILY)
    clock = {"now": NOW}
    scheduler = SyncScheduler(site_store, catalog, clock=lambda: clock["now"], sleep=sleeper)

    await scheduler.run_scheduled_sync()
    first = [p.to_dict() for p in site_store.list_collection(CollectionKind.PUBLICATIONS, "A1")]
    clock["now"] = NOW + timedelta(days=2)
    await scheduler.sync_one(site_store.get_tenant(tenant.id), "A1")
    second = [p.to_dict() for p in site_store.list_collection(CollectionKind.PUBLICATIONS, "A1")]

    assert first == second
    assert len(site_store.list_collection(CollectionKind.TOPICS, "A1")) == 1


@pytest.mark.asyncio
async def test_delay_applies_after_every_tenant(scheduler, site_store, catalog, sleeper):
    _tenant(site_store, "Synced", "A1")
    _tenant(site_store, "Skipped")
    _tenant(site_store, "Errored", "A500")
    catalog.entities["A500"] = CatalogHTTPError("boom", status=500)

    await scheduler.run_scheduled_sync()

    assert sleeper.delays == [2.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_store_failure_aborts_only_the_run(site_store, catalog, sleeper):
    class _ExplodingStore:
        def list_active_tenants(self):
            raise RuntimeError("database unavailable")

    scheduler = SyncScheduler(_ExplodingStore(), catalog, sleep=sleeper)

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 0, "skipped": 0, "errors": 0}


@pytest.mark.asyncio
async def test_profile_lookup_failure_is_an_error_entry_and_loop_continues(
    site_store, catalog, sleeper
):
    broken = _tenant(site_store, "Broken", "A500")
    fine = _tenant(site_store, "Fine", "A1")

    class _FlakyStore:
        def __getattr__(self, name):
            return getattr(site_store, name)

        def get_researcher_profile_by_tenant(self, tenant_id):
            if tenant_id == broken.id:
                raise RuntimeError("profile row unreadable")
            return site_store.get_researcher_profile_by_tenant(tenant_id)

    scheduler = SyncScheduler(_FlakyStore(), catalog, clock=lambda: NOW, sleep=sleeper)

    stats = await scheduler.run_scheduled_sync()

    assert stats.to_dict() == {"synced": 1, "skipped": 0, "errors": 1}
    by_name = {e.tenant_name: e for e in scheduler.get_logs()}
    assert by_name["Broken"].status is SyncStatus.ERROR
    assert by_name["Broken"].message == "profile row unreadable"
    assert by_name["Fine"].status is SyncStatus.SUCCESS
    assert site_store.get_tenant(fine.id).last_sync_at == NOW
    assert sleeper.delays == [2.0, 2.0]
    assert catalog.calls == ["entity:A1", "works:A1"]


@pytest.mark.asyncio
async def test_force_sync_ignores_staleness(scheduler, site_store, catalog):
    tenant = _tenant(site_store, "Fresh", "A1")
    profile = site_store.get_researcher_profile_by_tenant(tenant.id)
    site_store.update_researcher_profile_sync(profile.id, NOW)

    entry = await scheduler.force_sync_tenant(tenant.id)

    assert entry.status is SyncStatus.SUCCESS
    assert catalog.calls == ["entity:A1", "works:A1"]
    assert scheduler.get_logs()[0] is entry


@pytest.mark.asyncio
async def test_force_sync_unknown_tenant_returns_none(scheduler):
    assert await scheduler.force_sync_tenant("does-not-exist") is None
    assert scheduler.get_logs() == []


@pytest.mark.asyncio
async def test_force_sync_without_catalog_id_records_error(scheduler, site_store):
    tenant = _tenant(site_store, "NoProfile")

    entry = await scheduler.force_sync_tenant(tenant.id)

    assert entry.status is SyncStatus.ERROR
    assert entry.message == "no catalog id configured"
    assert scheduler.get_logs() == [entry]


@pytest.mark.asyncio
async def test_concurrent_sync_of_same_tenant_is_skipped(site_store, sleeper):
    tenant = _tenant(site_store, "Jane", "A1")
    release = asyncio.Event()

    class _SlowCatalog(_FakeCatalog):
        async def fetch_entity(self, catalog_id):
            await release.wait()
            return await super().fetch_entity(catalog_id)

    scheduler = SyncScheduler(site_store, _SlowCatalog(), clock=lambda: NOW, sleep=sleeper)

    first = asyncio.ensure_future(scheduler.sync_one(tenant, "A1"))
    await asyncio.sleep(0)
    second = await scheduler.sync_one(tenant, "A1")
    release.set()
    first_entry = await first

    assert second.status is SyncStatus.SKIPPED
    assert second.message == "sync already in progress"
    assert first_entry.status is SyncStatus.SUCCESS


@pytest.mark.asyncio
async def test_shared_log_buffer_is_injectable(site_store, catalog, sleeper):
    buffer = SyncLogBuffer(capacity=5)
    scheduler = SyncScheduler(site_store, catalog, log_buffer=buffer, sleep=sleeper)
    _tenant(site_store, "Jane")

    await scheduler.run_scheduled_sync()

    assert len(buffer) == 1


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_cancels_timer(site_store, catalog):
    gate = asyncio.Event()

    async def _blocking_sleep(delay: float) -> None:
        await gate.wait()

    scheduler = SyncScheduler(site_store, catalog, sleep=_blocking_sleep)

    scheduler.start(interval_hours=1)
    timer = scheduler._timer_task
    scheduler.start(interval_hours=6)

    assert scheduler.is_running
    assert scheduler._timer_task is timer
    assert scheduler.interval_hours == 1

    scheduler.stop()
    with pytest.raises(asyncio.CancelledError):
        await timer
    assert not scheduler.is_running
    assert timer.cancelled()


@pytest.mark.asyncio
async def test_timer_waits_initial_delay_then_runs(site_store, catalog):
    delays: List[float] = []
    second_sleep = asyncio.Event()

    async def _sleep(delay: float) -> None:
        delays.append(delay)
        if len(delays) >= 2:
            second_sleep.set()
            await asyncio.Event().wait()

    scheduler = SyncScheduler(
        site_store, catalog, initial_delay_s=60, tenant_delay_s=0, sleep=_sleep
    )
    scheduler.start(interval_hours=2)
    await asyncio.wait_for(second_sleep.wait(), timeout=1)
    scheduler.stop()
    await asyncio.gather(*scheduler._run_tasks)

    assert delays[:2] == [60, 7200]
