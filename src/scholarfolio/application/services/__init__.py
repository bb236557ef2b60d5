from scholarfolio.application.services.domain_resolver import (
    DomainResolver,
    normalize_hostname,
    resolve_site,
)
from scholarfolio.application.services.sync_log import SyncLogBuffer

__all__ = [
    "DomainResolver",
    "normalize_hostname",
    "resolve_site",
    "SyncLogBuffer",
]
