"""
Shared fixtures: a SqliteAdapter on a temporary database and a TestClient whose
settings point the upload root and temp dir into pytest's tmp_path.
"""
import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.sqlite import SqliteAdapter
from settings import Settings, get_settings


@pytest.fixture
def adapter(tmp_path):
    a = SqliteAdapter.from_url(f"sqlite:///{tmp_path / 'markify-test.db'}")
    yield a
    a.dispose()


@pytest.fixture
def settings(tmp_path):
    s = Settings(
        db_url=f"sqlite:///{tmp_path / 'markify-test.db'}",
        upload_root=str(tmp_path / "uploads"),
        tmp_dir=str(tmp_path / "tmp"),
        max_upload_size=64 * 1024,
        max_archive_size=256 * 1024,
        max_extracted_size=512 * 1024,
        reject_orphaned_images=False,
        archive_skip_system_entries=True,
    )
    s.upload_root_path().mkdir(parents=True, exist_ok=True)
    s.tmp_dir_path().mkdir(parents=True, exist_ok=True)
    return s


@pytest.fixture
def client(adapter, settings):
    from main import app

    app.dependency_overrides[get_settings] = lambda: settings
    app.state.storage_adapter = adapter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.storage_adapter = None
