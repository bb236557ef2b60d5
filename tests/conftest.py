# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src/ to sys.path so `import scholarfolio` works without an install.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

# Keep file logs out of the working tree
os.environ.setdefault("SCHOLARFOLIO_LOG_DIR", tempfile.mkdtemp(prefix="scholarfolio-logs-"))


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'scholarfolio.db'}"


@pytest.fixture
def site_store(db_url):
    from scholarfolio.infrastructure.stores.site_store import SiteStore

    store = SiteStore(db_url=db_url)
    yield store
    store.close()
