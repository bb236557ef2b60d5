from .site_store import SiteStore
from .sqlalchemy_db import SessionProvider, get_db_url

__all__ = ["SiteStore", "SessionProvider", "get_db_url"]
