"""Application ports (interfaces) used by the application layer."""

from .catalog_client_port import CatalogClientPort
from .site_store_port import SiteStorePort

__all__ = ["CatalogClientPort", "SiteStorePort"]
