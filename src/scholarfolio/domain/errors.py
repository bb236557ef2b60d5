# src/scholarfolio/domain/errors.py
"""Errors raised by the catalog client and the sync workflow."""

from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    """Base class for failures talking to the external catalog."""


class CatalogHTTPError(CatalogError):
    """Non-2xx response or transport failure. ``status`` is None for transport errors."""

    def __init__(self, message: str, *, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class CatalogNotFoundError(CatalogHTTPError):
    """The catalog answered 404 for the requested record."""

    def __init__(self, message: str, *, url: str = ""):
        super().__init__(message, status=404, url=url)


class SyncConfigurationError(Exception):
    """A tenant is set up in a way that makes syncing impossible (e.g. no catalog id)."""
