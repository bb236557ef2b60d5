"""tenant catalog cache

Revision ID: 0001_tenant_catalog_cache
Revises:
Create Date: 2026-10-18

Adds tenants, domains and researcher profiles, plus the per-researcher catalog
cache (raw blobs, topics, affiliations, publications).
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import context, op


revision = "0001_tenant_catalog_cache"
down_revision = None
branch_labels = None
depends_on = None


def _is_offline() -> bool:
    try:
        return bool(context.is_offline_mode())
    except Exception:
        return False


def _insp():
    return sa.inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return _insp().has_table(name)


def _get_indexes(table: str) -> set[str]:
    idx = set()
    for i in _insp().get_indexes(table):
        idx.add(str(i.get("name") or ""))
    return idx


def _create_index(name: str, table: str, cols: list[str], unique: bool = False) -> None:
    if _is_offline():
        op.create_index(name, table, cols, unique=unique)
        return
    if name in _get_indexes(table):
        return
    op.create_index(name, table, cols, unique=unique)


def upgrade() -> None:
    if _is_offline() or not _has_table("tenants"):
        op.create_table(
            "tenants",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("name", sa.String(length=256), server_default="", nullable=False),
            sa.Column("plan", sa.String(length=32), server_default="starter", nullable=False),
            sa.Column("status", sa.String(length=32), server_default="pending", nullable=False),
            sa.Column("sync_frequency", sa.String(length=16), server_default="monthly", nullable=False),
            sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("contact_email", sa.String(length=256), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
    _create_index("ix_tenants_status", "tenants", ["status"])

    if _is_offline() or not _has_table("domains"):
        op.create_table(
            "domains",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("hostname", sa.String(length=255), nullable=False),
            sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("is_subdomain", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
    _create_index("ix_domains_tenant_id", "domains", ["tenant_id"])
    _create_index("ix_domains_hostname", "domains", ["hostname"], unique=True)

    if _is_offline() or not _has_table("researcher_profiles"):
        op.create_table(
            "researcher_profiles",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("tenant_id", sa.String(length=64), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("catalog_id", sa.String(length=64), nullable=True),
            sa.Column("display_name", sa.Text(), nullable=True),
            sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("catalog_id", name="uq_researcher_profiles_catalog_id"),
        )
    _create_index("ix_researcher_profiles_tenant_id", "researcher_profiles", ["tenant_id"], unique=True)

    if _is_offline() or not _has_table("catalog_blobs"):
        op.create_table(
            "catalog_blobs",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("catalog_id", sa.String(length=64), nullable=False),
            sa.Column("data_type", sa.String(length=32), nullable=False),
            sa.Column("payload_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("catalog_id", "data_type", name="uq_catalog_blobs_id_type"),
        )
    _create_index("ix_catalog_blobs_catalog_id", "catalog_blobs", ["catalog_id"])

    if _is_offline() or not _has_table("research_topics"):
        op.create_table(
            "research_topics",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("catalog_id", sa.String(length=64), nullable=False),
            sa.Column("topic_id", sa.String(length=128), server_default="", nullable=False),
            sa.Column("display_name", sa.Text(), server_default="", nullable=False),
            sa.Column("count", sa.Integer(), server_default="0", nullable=False),
            sa.Column("subfield", sa.Text(), nullable=True),
            sa.Column("field", sa.Text(), nullable=True),
            sa.Column("domain", sa.Text(), nullable=True),
        )
    _create_index("ix_research_topics_catalog_id", "research_topics", ["catalog_id"])

    if _is_offline() or not _has_table("affiliations"):
        op.create_table(
            "affiliations",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("catalog_id", sa.String(length=64), nullable=False),
            sa.Column("institution_id", sa.String(length=128), server_default="", nullable=False),
            sa.Column("institution_name", sa.Text(), server_default="", nullable=False),
            sa.Column("institution_type", sa.String(length=64), nullable=True),
            sa.Column("country_code", sa.String(length=8), nullable=True),
            sa.Column("years_json", sa.Text(), server_default="[]", nullable=False),
            sa.Column("start_year", sa.Integer(), nullable=True),
            sa.Column("end_year", sa.Integer(), nullable=True),
        )
    _create_index("ix_affiliations_catalog_id", "affiliations", ["catalog_id"])

    if _is_offline() or not _has_table("publications"):
        op.create_table(
            "publications",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("catalog_id", sa.String(length=64), nullable=False),
            sa.Column("work_id", sa.String(length=128), server_default="", nullable=False),
            sa.Column("title", sa.Text(), server_default="", nullable=False),
            sa.Column("author_names", sa.Text(), server_default="", nullable=False),
            sa.Column("journal", sa.Text(), nullable=True),
            sa.Column("publication_year", sa.Integer(), nullable=True),
            sa.Column("citation_count", sa.Integer(), server_default="0", nullable=False),
            sa.Column("topics_json", sa.Text(), server_default="[]", nullable=False),
            sa.Column("doi", sa.String(length=256), nullable=True),
            sa.Column("is_open_access", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("publication_type", sa.String(length=64), nullable=True),
            sa.Column("is_review_article", sa.Boolean(), server_default=sa.false(), nullable=False),
        )
    _create_index("ix_publications_catalog_id", "publications", ["catalog_id"])
    _create_index("ix_publications_publication_year", "publications", ["publication_year"])


def downgrade() -> None:
    op.drop_table("publications")
    op.drop_table("affiliations")
    op.drop_table("research_topics")
    op.drop_table("catalog_blobs")
    op.drop_table("researcher_profiles")
    op.drop_table("domains")
    op.drop_table("tenants")
