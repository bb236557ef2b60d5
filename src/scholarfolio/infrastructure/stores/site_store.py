from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from scholarfolio.domain.catalog import (
    AffiliationRow,
    CatalogDataType,
    CollectionKind,
    PublicationRow,
    TopicRow,
)
from scholarfolio.domain.tenant import (
    Domain,
    PlanType,
    ResearcherProfile,
    SyncFrequency,
    Tenant,
    TenantStatus,
)
from scholarfolio.infrastructure.stores.models import (
    AffiliationModel,
    Base,
    CatalogBlobModel,
    DomainModel,
    PublicationModel,
    ResearcherProfileModel,
    ResearchTopicModel,
    TenantModel,
)
from scholarfolio.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _row_fields(row: Any) -> Dict[str, Any]:
    if is_dataclass(row) and not isinstance(row, type):
        return asdict(row)
    if isinstance(row, dict):
        return dict(row)
    raise TypeError(f"unsupported row type: {type(row).__name__}")


_COLLECTION_MODELS = {
    CollectionKind.TOPICS: ResearchTopicModel,
    CollectionKind.AFFILIATIONS: AffiliationModel,
    CollectionKind.PUBLICATIONS: PublicationModel,
}


class SiteStore:
    """Tenants, domains, researcher profiles and the per-researcher catalog cache."""

    def __init__(self, db_url: Optional[str] = None, *, auto_create_schema: bool = True):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    # --- tenant provisioning ---

    def create_tenant(
        self,
        *,
        name: str,
        plan: PlanType | str = PlanType.STARTER,
        status: TenantStatus | str = TenantStatus.PENDING,
        sync_frequency: Optional[SyncFrequency | str] = None,
        contact_email: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Tenant:
        name = str(name or "").strip()
        if not name:
            raise ValueError("tenant name is required")
        plan = PlanType(plan)
        frequency = (
            SyncFrequency.parse(sync_frequency) if sync_frequency else SyncFrequency.for_plan(plan)
        )
        now = _utcnow()
        with self._provider.session() as session:
            row = TenantModel(
                id=tenant_id or uuid4().hex,
                name=name,
                plan=plan.value,
                status=TenantStatus(status).value,
                sync_frequency=frequency.value,
                contact_email=contact_email,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._tenant_to_domain(row)

    def set_tenant_status(self, tenant_id: str, status: TenantStatus | str) -> Optional[Tenant]:
        with self._provider.session() as session:
            row = session.get(TenantModel, tenant_id)
            if row is None:
                return None
            row.status = TenantStatus(status).value
            row.updated_at = _utcnow()
            session.commit()
            return self._tenant_to_domain(row)

    def add_domain(
        self,
        *,
        tenant_id: str,
        hostname: str,
        is_primary: bool = False,
        is_subdomain: bool = False,
    ) -> Domain:
        hostname = str(hostname or "").strip().lower()
        if not hostname:
            raise ValueError("hostname is required")
        with self._provider.session() as session:
            if session.get(TenantModel, tenant_id) is None:
                raise ValueError(f"tenant not found: {tenant_id}")
            row = DomainModel(
                id=uuid4().hex,
                tenant_id=tenant_id,
                hostname=hostname,
                is_primary=bool(is_primary),
                is_subdomain=bool(is_subdomain),
                created_at=_utcnow(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                raise ValueError(f"hostname already registered: {hostname}") from e
            return self._domain_to_domain(row)

    def upsert_researcher_profile(
        self,
        *,
        tenant_id: str,
        catalog_id: Optional[str],
        display_name: Optional[str] = None,
    ) -> ResearcherProfile:
        now = _utcnow()
        catalog_id = str(catalog_id or "").strip() or None
        with self._provider.session() as session:
            if session.get(TenantModel, tenant_id) is None:
                raise ValueError(f"tenant not found: {tenant_id}")
            row = session.execute(
                select(ResearcherProfileModel).where(ResearcherProfileModel.tenant_id == tenant_id)
            ).scalar_one_or_none()
            if row is None:
                row = ResearcherProfileModel(id=uuid4().hex, tenant_id=tenant_id, created_at=now)
                session.add(row)
            row.catalog_id = catalog_id
            if display_name is not None:
                row.display_name = display_name
            row.updated_at = now
            try:
                session.commit()
            except IntegrityError as e:
                raise ValueError(f"catalog id already linked to another tenant: {catalog_id}") from e
            return self._profile_to_domain(row)

    def list_tenants(self) -> List[Tenant]:
        with self._provider.session() as session:
            rows = session.execute(
                select(TenantModel).order_by(TenantModel.created_at.asc(), TenantModel.id.asc())
            ).scalars().all()
            return [self._tenant_to_domain(r) for r in rows]

    # --- reads used by the resolver and the scheduler ---

    def get_domain_by_hostname(self, hostname: str) -> Optional[Domain]:
        hostname = str(hostname or "").strip().lower()
        if not hostname:
            return None
        with self._provider.session() as session:
            row = session.execute(
                select(DomainModel).where(DomainModel.hostname == hostname)
            ).scalar_one_or_none()
            return self._domain_to_domain(row) if row else None

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        with self._provider.session() as session:
            row = session.get(TenantModel, tenant_id)
            return self._tenant_to_domain(row) if row else None

    def get_researcher_profile_by_tenant(self, tenant_id: str) -> Optional[ResearcherProfile]:
        with self._provider.session() as session:
            row = session.execute(
                select(ResearcherProfileModel).where(ResearcherProfileModel.tenant_id == tenant_id)
            ).scalar_one_or_none()
            return self._profile_to_domain(row) if row else None

    def list_active_tenants(self) -> List[Tenant]:
        with self._provider.session() as session:
            rows = session.execute(
                select(TenantModel)
                .where(TenantModel.status == TenantStatus.ACTIVE.value)
                .order_by(TenantModel.created_at.asc(), TenantModel.id.asc())
            ).scalars().all()
            return [self._tenant_to_domain(r) for r in rows]

    # --- sync writes ---

    def update_tenant_sync(self, tenant_id: str, synced_at: datetime) -> None:
        with self._provider.session() as session:
            row = session.get(TenantModel, tenant_id)
            if row is None:
                return
            row.last_sync_at = synced_at
            row.updated_at = _utcnow()
            session.commit()

    def update_researcher_profile_sync(self, profile_id: str, synced_at: datetime) -> None:
        with self._provider.session() as session:
            row = session.get(ResearcherProfileModel, profile_id)
            if row is None:
                return
            row.last_synced_at = synced_at
            row.updated_at = _utcnow()
            session.commit()

    def upsert_cached_blob(
        self, catalog_id: str, data_type: CatalogDataType | str, payload: Dict[str, Any]
    ) -> None:
        data_type = CatalogDataType(data_type)
        with self._provider.session() as session:
            row = session.execute(
                select(CatalogBlobModel).where(
                    CatalogBlobModel.catalog_id == catalog_id,
                    CatalogBlobModel.data_type == data_type.value,
                )
            ).scalar_one_or_none()
            if row is None:
                row = CatalogBlobModel(catalog_id=catalog_id, data_type=data_type.value)
                session.add(row)
            row.set_payload(payload)
            row.last_updated = _utcnow()
            session.commit()

    def get_cached_blob(
        self, catalog_id: str, data_type: CatalogDataType | str
    ) -> Optional[Dict[str, Any]]:
        data_type = CatalogDataType(data_type)
        with self._provider.session() as session:
            row = session.execute(
                select(CatalogBlobModel).where(
                    CatalogBlobModel.catalog_id == catalog_id,
                    CatalogBlobModel.data_type == data_type.value,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return {
                "catalog_id": row.catalog_id,
                "data_type": row.data_type,
                "payload": row.get_payload(),
                "last_updated": _as_utc(row.last_updated).isoformat() if row.last_updated else None,
            }

    def replace_collection_for_id(
        self, kind: CollectionKind | str, catalog_id: str, rows: Sequence[Any]
    ) -> int:
        """Delete all rows of ``kind`` for ``catalog_id`` and insert ``rows`` in one transaction."""
        kind = CollectionKind(kind)
        model = _COLLECTION_MODELS[kind]
        with self._provider.session() as session:
            session.execute(delete(model).where(model.catalog_id == catalog_id))
            for raw in rows or []:
                fields = _row_fields(raw)
                fields["catalog_id"] = catalog_id
                session.add(self._build_collection_row(kind, fields))
            session.commit()
        return len(rows or [])

    def list_collection(self, kind: CollectionKind | str, catalog_id: str) -> List[Any]:
        kind = CollectionKind(kind)
        model = _COLLECTION_MODELS[kind]
        with self._provider.session() as session:
            rows = session.execute(
                select(model).where(model.catalog_id == catalog_id).order_by(model.id.asc())
            ).scalars().all()
            return [self._collection_row_to_domain(kind, r) for r in rows]

    def close(self) -> None:
        self._provider.engine.dispose()

    # --- mapping helpers ---

    @staticmethod
    def _build_collection_row(kind: CollectionKind, fields: Dict[str, Any]):
        if kind == CollectionKind.TOPICS:
            return ResearchTopicModel(
                catalog_id=fields["catalog_id"],
                topic_id=str(fields.get("topic_id") or ""),
                display_name=str(fields.get("display_name") or ""),
                count=int(fields.get("count") or 0),
                subfield=fields.get("subfield"),
                field=fields.get("field"),
                domain=fields.get("domain"),
            )
        if kind == CollectionKind.AFFILIATIONS:
            row = AffiliationModel(
                catalog_id=fields["catalog_id"],
                institution_id=str(fields.get("institution_id") or ""),
                institution_name=str(fields.get("institution_name") or ""),
                institution_type=fields.get("institution_type"),
                country_code=fields.get("country_code"),
                start_year=fields.get("start_year"),
                end_year=fields.get("end_year"),
            )
            row.set_years(fields.get("years") or [])
            return row
        row = PublicationModel(
            catalog_id=fields["catalog_id"],
            work_id=str(fields.get("work_id") or ""),
            title=str(fields.get("title") or ""),
            author_names=str(fields.get("author_names") or ""),
            journal=fields.get("journal"),
            publication_year=fields.get("publication_year"),
            citation_count=int(fields.get("citation_count") or 0),
            doi=fields.get("doi"),
            is_open_access=bool(fields.get("is_open_access")),
            publication_type=fields.get("publication_type"),
            is_review_article=bool(fields.get("is_review_article")),
        )
        row.set_topics(fields.get("topics") or [])
        return row

    @staticmethod
    def _collection_row_to_domain(kind: CollectionKind, row: Any):
        if kind == CollectionKind.TOPICS:
            return TopicRow(
                catalog_id=row.catalog_id,
                topic_id=row.topic_id,
                display_name=row.display_name,
                count=int(row.count or 0),
                subfield=row.subfield,
                field=row.field,
                domain=row.domain,
            )
        if kind == CollectionKind.AFFILIATIONS:
            return AffiliationRow(
                catalog_id=row.catalog_id,
                institution_id=row.institution_id,
                institution_name=row.institution_name,
                institution_type=row.institution_type,
                country_code=row.country_code,
                years=row.get_years(),
                start_year=row.start_year,
                end_year=row.end_year,
            )
        return PublicationRow(
            catalog_id=row.catalog_id,
            work_id=row.work_id,
            title=row.title,
            author_names=row.author_names or "",
            journal=row.journal,
            publication_year=row.publication_year,
            citation_count=int(row.citation_count or 0),
            topics=row.get_topics(),
            doi=row.doi,
            is_open_access=bool(row.is_open_access),
            publication_type=row.publication_type,
            is_review_article=bool(row.is_review_article),
        )

    @staticmethod
    def _tenant_to_domain(row: TenantModel) -> Tenant:
        return Tenant(
            id=row.id,
            name=row.name,
            plan=PlanType(row.plan or PlanType.STARTER.value),
            status=TenantStatus(row.status or TenantStatus.PENDING.value),
            sync_frequency=SyncFrequency.parse(row.sync_frequency),
            last_sync_at=_as_utc(row.last_sync_at),
            contact_email=row.contact_email,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    @staticmethod
    def _domain_to_domain(row: DomainModel) -> Domain:
        return Domain(
            id=row.id,
            hostname=row.hostname,
            tenant_id=row.tenant_id,
            is_primary=bool(row.is_primary),
            is_subdomain=bool(row.is_subdomain),
        )

    @staticmethod
    def _profile_to_domain(row: ResearcherProfileModel) -> ResearcherProfile:
        return ResearcherProfile(
            id=row.id,
            tenant_id=row.tenant_id,
            catalog_id=row.catalog_id,
            display_name=row.display_name,
            last_synced_at=_as_utc(row.last_synced_at),
        )
