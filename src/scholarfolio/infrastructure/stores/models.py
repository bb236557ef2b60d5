from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _load_json(raw: Optional[str], default: Any) -> Any:
    try:
        data = json.loads(raw or "null")
    except (TypeError, ValueError):
        return default
    return default if data is None else data


class TenantModel(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), default="")
    plan: Mapped[str] = mapped_column(String(32), default="starter")
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True)
    sync_frequency: Mapped[str] = mapped_column(String(16), default="monthly")
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    domains = relationship("DomainModel", back_populates="tenant", cascade="all, delete-orphan")
    profile = relationship(
        "ResearcherProfileModel",
        back_populates="tenant",
        uselist=False,
        cascade="all, delete-orphan",
    )


class DomainModel(Base):
    __tablename__ = "domains"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.id"), index=True)
    hostname: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    is_subdomain: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tenant = relationship("TenantModel", back_populates="domains")


class ResearcherProfileModel(Base):
    __tablename__ = "researcher_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id"), unique=True, index=True
    )
    catalog_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tenant = relationship("TenantModel", back_populates="profile")


class CatalogBlobModel(Base):
    """Raw upstream payload, one row per (catalog_id, data_type)."""

    __tablename__ = "catalog_blobs"
    __table_args__ = (
        UniqueConstraint("catalog_id", "data_type", name="uq_catalog_blobs_id_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    catalog_id: Mapped[str] = mapped_column(String(64), index=True)
    data_type: Mapped[str] = mapped_column(String(32))  # researcher/works
    payload_json: Mapped[str] = mapped_column(Text, default="{}")
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def set_payload(self, payload: Dict[str, Any]) -> None:
        self.payload_json = json.dumps(payload or {}, ensure_ascii=False)

    def get_payload(self) -> Dict[str, Any]:
        data = _load_json(self.payload_json, {})
        return data if isinstance(data, dict) else {}


class ResearchTopicModel(Base):
    __tablename__ = "research_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    catalog_id: Mapped[str] = mapped_column(String(64), index=True)
    topic_id: Mapped[str] = mapped_column(String(128), default="")
    display_name: Mapped[str] = mapped_column(Text, default="")
    count: Mapped[int] = mapped_column(Integer, default=0)
    subfield: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    field: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    domain: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AffiliationModel(Base):
    __tablename__ = "affiliations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    catalog_id: Mapped[str] = mapped_column(String(64), index=True)
    institution_id: Mapped[str] = mapped_column(String(128), default="")
    institution_name: Mapped[str] = mapped_column(Text, default="")
    institution_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    years_json: Mapped[str] = mapped_column(Text, default="[]")
    start_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def set_years(self, years: List[int]) -> None:
        self.years_json = json.dumps([int(y) for y in years or []])

    def get_years(self) -> List[int]:
        data = _load_json(self.years_json, [])
        return [int(y) for y in data] if isinstance(data, list) else []


class PublicationModel(Base):
    __tablename__ = "publications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    catalog_id: Mapped[str] = mapped_column(String(64), index=True)
    work_id: Mapped[str] = mapped_column(String(128), default="")
    title: Mapped[str] = mapped_column(Text, default="")
    author_names: Mapped[str] = mapped_column(Text, default="")
    journal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    publication_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    citation_count: Mapped[int] = mapped_column(Integer, default=0)
    topics_json: Mapped[str] = mapped_column(Text, default="[]")
    doi: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    is_open_access: Mapped[bool] = mapped_column(Boolean, default=False)
    publication_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_review_article: Mapped[bool] = mapped_column(Boolean, default=False)

    def set_topics(self, topics: List[str]) -> None:
        self.topics_json = json.dumps([str(t) for t in topics or []], ensure_ascii=False)

    def get_topics(self) -> List[str]:
        data = _load_json(self.topics_json, [])
        return [str(t) for t in data] if isinstance(data, list) else []
