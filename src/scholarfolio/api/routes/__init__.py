"""API Routes"""

from . import site, sync_admin

__all__ = ["site", "sync_admin"]
