"""
CLI entry point

Operator commands for tenant provisioning, hostname resolution and catalog sync.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv

from scholarfolio.application.services.domain_resolver import DomainResolver
from scholarfolio.application.workflows.sync_scheduler import make_default_scheduler
from scholarfolio.config import SyncSettings
from scholarfolio.domain.tenant import PlanType, SyncFrequency, TenantStatus
from scholarfolio.infrastructure.stores.site_store import SiteStore

# Load local .env automatically for database and catalog settings.
load_dotenv(find_dotenv(usecwd=True), override=False)


def create_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="scholarfolio",
        description="Scholarfolio - researcher portfolio sites backed by OpenAlex",
    )
    parser.add_argument("--db-url", help="Database URL (default: SCHOLARFOLIO_DB_URL)")
    parser.add_argument("--version", "-V", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sync_all_parser = subparsers.add_parser("sync-all", help="Sync every active tenant that is due")
    sync_all_parser.add_argument(
        "--no-delay", action="store_true", help="Skip the pause between tenants"
    )

    sync_tenant_parser = subparsers.add_parser(
        "sync-tenant", help="Sync one tenant now, ignoring its refresh cadence"
    )
    sync_tenant_parser.add_argument("tenant_id", help="Tenant id")

    resolve_parser = subparsers.add_parser("resolve", help="Show what a hostname resolves to")
    resolve_parser.add_argument("hostname", help="Hostname, optionally with port")

    add_tenant_parser = subparsers.add_parser("add-tenant", help="Provision a tenant")
    add_tenant_parser.add_argument("name", help="Display name")
    add_tenant_parser.add_argument(
        "--plan", choices=[p.value for p in PlanType], default=PlanType.STARTER.value
    )
    add_tenant_parser.add_argument(
        "--status", choices=[s.value for s in TenantStatus], default=TenantStatus.ACTIVE.value
    )
    add_tenant_parser.add_argument(
        "--sync-frequency",
        choices=[f.value for f in SyncFrequency],
        help="Override the plan's default refresh cadence",
    )
    add_tenant_parser.add_argument("--catalog-id", help="OpenAlex author id, e.g. A5023888391")
    add_tenant_parser.add_argument("--email", help="Contact email")

    add_domain_parser = subparsers.add_parser("add-domain", help="Attach a hostname to a tenant")
    add_domain_parser.add_argument("tenant_id", help="Tenant id")
    add_domain_parser.add_argument("hostname", help="Hostname")
    add_domain_parser.add_argument("--primary", action="store_true", help="Mark as primary")
    add_domain_parser.add_argument(
        "--subdomain", action="store_true", help="Platform subdomain rather than a custom domain"
    )

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


async def _run_sync_all(store: SiteStore, settings: SyncSettings, no_delay: bool) -> int:
    scheduler = make_default_scheduler(settings=settings, store=store)
    if no_delay:
        scheduler.tenant_delay_s = 0
    try:
        stats = await scheduler.run_scheduled_sync()
    finally:
        await scheduler.client.close()
    _print_json({"stats": stats.to_dict(), "entries": [e.to_dict() for e in scheduler.get_logs()]})
    return 1 if stats.errors else 0


async def _run_sync_tenant(store: SiteStore, settings: SyncSettings, tenant_id: str) -> int:
    scheduler = make_default_scheduler(settings=settings, store=store)
    try:
        entry = await scheduler.force_sync_tenant(tenant_id)
    finally:
        await scheduler.client.close()
    if entry is None:
        print(f"Tenant not found: {tenant_id}", file=sys.stderr)
        return 2
    _print_json(entry.to_dict())
    return 1 if entry.status.value == "error" else 0


def run_cli(args: Optional[list] = None) -> int:
    """
    Run the CLI.

    Args:
        args: command line arguments (defaults to sys.argv)

    Returns:
        exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print("Scholarfolio v0.1.0")
        return 0

    if not parsed.command:
        parser.print_help()
        return 0

    settings = SyncSettings.from_env()
    store = SiteStore(db_url=parsed.db_url)

    if parsed.command == "sync-all":
        return asyncio.run(_run_sync_all(store, settings, parsed.no_delay))

    if parsed.command == "sync-tenant":
        return asyncio.run(_run_sync_tenant(store, settings, parsed.tenant_id))

    if parsed.command == "resolve":
        resolver = DomainResolver(
            store,
            marketing_domains=settings.marketing_domains,
            preview_suffixes=settings.preview_suffixes,
        )
        _print_json(resolver.resolve(parsed.hostname).to_dict())
        return 0

    if parsed.command == "add-tenant":
        try:
            tenant = store.create_tenant(
                name=parsed.name,
                plan=parsed.plan,
                status=parsed.status,
                sync_frequency=parsed.sync_frequency,
                contact_email=parsed.email,
            )
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        payload = tenant.to_dict()
        if parsed.catalog_id:
            try:
                profile = store.upsert_researcher_profile(
                    tenant_id=tenant.id, catalog_id=parsed.catalog_id, display_name=parsed.name
                )
            except ValueError as e:
                print(f"Error: {e} (tenant {tenant.id} created without a profile)", file=sys.stderr)
                return 2
            payload["profile"] = profile.to_dict()
        _print_json(payload)
        return 0

    if parsed.command == "add-domain":
        try:
            domain = store.add_domain(
                tenant_id=parsed.tenant_id,
                hostname=parsed.hostname,
                is_primary=parsed.primary,
                is_subdomain=parsed.subdomain,
            )
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        _print_json(domain.to_dict())
        return 0

    parser.print_help()
    return 1


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
