# src/scholarfolio/config.py
"""
Runtime settings read from the environment.

Entry points (API, CLI, worker) call ``load_dotenv`` first so a local ``.env``
file is honoured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Tuple

DEFAULT_OPENALEX_BASE_URL = "https://api.openalex.org"
DEFAULT_MARKETING_DOMAINS = ("localhost", "127.0.0.1")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y")


def _parse_csv_env(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class SyncSettings:
    openalex_base_url: str = DEFAULT_OPENALEX_BASE_URL
    openalex_mailto: str = ""
    openalex_timeout_s: float = 30.0
    openalex_request_interval_s: float = 0.1
    interval_hours: float = 1.0
    initial_delay_s: float = 60.0
    tenant_delay_s: float = 2.0
    enabled: bool = False
    marketing_domains: Tuple[str, ...] = DEFAULT_MARKETING_DOMAINS
    preview_suffixes: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        marketing = _parse_csv_env("SCHOLARFOLIO_MARKETING_DOMAINS")
        return cls(
            openalex_base_url=os.getenv("SCHOLARFOLIO_OPENALEX_BASE_URL", DEFAULT_OPENALEX_BASE_URL),
            openalex_mailto=os.getenv("SCHOLARFOLIO_OPENALEX_MAILTO", ""),
            openalex_timeout_s=float(os.getenv("SCHOLARFOLIO_OPENALEX_TIMEOUT", "30")),
            openalex_request_interval_s=float(
                os.getenv("SCHOLARFOLIO_OPENALEX_REQUEST_INTERVAL", "0.1")
            ),
            interval_hours=float(os.getenv("SCHOLARFOLIO_SYNC_INTERVAL_HOURS", "1")),
            initial_delay_s=float(os.getenv("SCHOLARFOLIO_SYNC_INITIAL_DELAY", "60")),
            tenant_delay_s=float(os.getenv("SCHOLARFOLIO_SYNC_TENANT_DELAY", "2")),
            enabled=_env_bool("SCHOLARFOLIO_SYNC_ENABLED"),
            marketing_domains=tuple(DEFAULT_MARKETING_DOMAINS) + tuple(marketing),
            preview_suffixes=tuple(_parse_csv_env("SCHOLARFOLIO_PREVIEW_SUFFIXES")),
        )
