from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DB_URL = "sqlite:///data/scholarfolio.db"


def get_db_url() -> str:
    """Database URL from SCHOLARFOLIO_DB_URL, defaulting to a local SQLite file."""
    return os.getenv("SCHOLARFOLIO_DB_URL") or DEFAULT_DB_URL


def _ensure_sqlite_dir(db_url: str) -> None:
    prefix = "sqlite:///"
    if not db_url.startswith(prefix):
        return
    path = db_url[len(prefix) :]
    if not path or path == ":memory:":
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


class SessionProvider:
    """Owns one engine and hands out short-lived sessions."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or get_db_url()
        _ensure_sqlite_dir(self.db_url)

        connect_args = {}
        if self.db_url.startswith("sqlite"):
            # Resolver reads happen on request threads, sync writes on the scheduler's
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(
            self.db_url, future=True, pool_pre_ping=True, connect_args=connect_args
        )
        if self.db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self._factory = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
