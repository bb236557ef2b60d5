from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from scholarfolio.api import main as api_main
from scholarfolio.api import state as api_state
from scholarfolio.api.site_context import get_site, install_site_middleware
from scholarfolio.config import SyncSettings
from scholarfolio.domain.catalog import CollectionKind, PublicationRow
from scholarfolio.domain.tenant import TenantStatus


def _setup(monkeypatch, site_store):
    monkeypatch.setattr(api_state, "_settings", SyncSettings())
    monkeypatch.setattr(api_state, "_site_store", site_store)


def test_site_endpoint_reports_tenant(monkeypatch, site_store):
    _setup(monkeypatch, site_store)
    tenant = site_store.create_tenant(name="Dr. Jane Doe", status=TenantStatus.ACTIVE)
    site_store.add_domain(tenant_id=tenant.id, hostname="janedoe.org")

    with TestClient(api_main.app) as client:
        resp = client.get("/api/site", headers={"host": "janedoe.org"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["is_marketing_site"] is False
    assert body["tenant"]["id"] == tenant.id
    assert body["domain"]["hostname"] == "janedoe.org"


def test_site_endpoint_marketing_fallback(monkeypatch, site_store):
    _setup(monkeypatch, site_store)

    with TestClient(api_main.app) as client:
        resp = client.get("/api/site", headers={"host": "nobody.example"})

    assert resp.status_code == 200
    assert resp.json()["is_marketing_site"] is True
    assert resp.json()["tenant"] is None


def test_site_endpoint_uses_first_forwarded_host(monkeypatch, site_store):
    _setup(monkeypatch, site_store)
    tenant = site_store.create_tenant(name="Dr. Jane Doe", status=TenantStatus.ACTIVE)
    site_store.add_domain(tenant_id=tenant.id, hostname="janedoe.org")

    with TestClient(api_main.app) as client:
        resp = client.get(
            "/api/site",
            headers={"host": "internal:8000", "x-forwarded-host": "JaneDoe.org:443, proxy.internal"},
        )

    assert resp.status_code == 200
    assert resp.json()["hostname"] == "janedoe.org"
    assert resp.json()["tenant"]["id"] == tenant.id


def test_resolver_construction_failure_falls_back_to_marketing():
    def _broken_factory():
        raise RuntimeError("database unavailable")

    app = FastAPI()
    install_site_middleware(app, _broken_factory)

    @app.get("/site")
    async def _site(request: Request):
        return get_site(request).to_dict()

    with TestClient(app) as client:
        resp = client.get("/site", headers={"host": "JaneDoe.org:8443"})

    assert resp.status_code == 200
    assert resp.json() == {
        "hostname": "janedoe.org",
        "is_marketing_site": True,
        "tenant": None,
        "domain": None,
    }


def test_portfolio_is_tenant_only(monkeypatch, site_store):
    _setup(monkeypatch, site_store)

    with TestClient(api_main.app) as client:
        resp = client.get("/api/site/portfolio", headers={"host": "localhost"})

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Site not found"


def test_portfolio_returns_cached_publications(monkeypatch, site_store):
    _setup(monkeypatch, site_store)
    tenant = site_store.create_tenant(name="Jane", status=TenantStatus.ACTIVE)
    site_store.add_domain(tenant_id=tenant.id, hostname="janedoe.org")
    site_store.upsert_researcher_profile(tenant_id=tenant.id, catalog_id="A1", display_name="Jane")
    site_store.replace_collection_for_id(
        CollectionKind.PUBLICATIONS,
        "A1",
        [PublicationRow(catalog_id="A1", work_id="W1", title="Folding", citation_count=3)],
    )

    with TestClient(api_main.app) as client:
        resp = client.get("/api/site/portfolio", headers={"host": "janedoe.org"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["catalog_id"] == "A1"
    assert [p["title"] for p in body["publications"]] == ["Folding"]
    assert body["topics"] == []


def test_plans_redirect_on_tenant_site(monkeypatch, site_store):
    _setup(monkeypatch, site_store)
    tenant = site_store.create_tenant(name="Jane", status=TenantStatus.ACTIVE)
    site_store.add_domain(tenant_id=tenant.id, hostname="janedoe.org")

    with TestClient(api_main.app) as client:
        tenant_resp = client.get(
            "/api/site/plans", headers={"host": "janedoe.org"}, follow_redirects=False
        )
        marketing_resp = client.get("/api/site/plans", headers={"host": "localhost"})

    assert tenant_resp.status_code == 307
    assert tenant_resp.headers["location"] == "/"
    assert marketing_resp.status_code == 200
    plans = {p["plan"]: p["sync_frequency"] for p in marketing_resp.json()}
    assert plans == {"starter": "monthly", "professional": "weekly", "institution": "monthly"}
