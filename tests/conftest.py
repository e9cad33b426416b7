"""Shared fixtures for the AppRelay test suite."""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import pytest

from apprelay.backends import create_backend
from apprelay.config import Settings
from apprelay.services.file_store import FileStore, StoredFile


# ---------------------------------------------------------------------------
# Build data helpers
# ---------------------------------------------------------------------------

BASE_DATE = datetime(2026, 1, 1, 12, 0, 0)


def build_data(**overrides: Any) -> Dict[str, Any]:
    """Minimal valid build data; keyword overrides win."""
    data = {
        "app_name": "Demo",
        "version_name": "1.0.0",
        "version_code": "100",
        "platform": "iOS",
        "channel": "Beta",
        "changelog": "Initial release",
    }
    data.update(overrides)
    return data


def uploaded_at(minutes: int) -> datetime:
    return BASE_DATE + timedelta(minutes=minutes)


class RecordingFileStore(FileStore):
    """In-memory file store that records deletes and can be told to fail."""

    def __init__(self, fail_on: tuple = ()):
        self.deleted: List[str] = []
        self.fail_on = set(fail_on)

    async def upload(self, source: Path, suggested_name, mime_type) -> StoredFile:
        name = f"stored-{Path(suggested_name or 'file').name}"
        return StoredFile(name=name, url=f"http://files.test/{name}")

    async def delete(self, stored_name: str) -> None:
        if stored_name in self.fail_on:
            raise OSError(f"simulated failure deleting {stored_name}")
        self.deleted.append(stored_name)


# ---------------------------------------------------------------------------
# Configuration and backends
# ---------------------------------------------------------------------------


def make_config(tmp_path: Path, **overrides: Any) -> Settings:
    values = {
        "database_backend": "local",
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}",
        "local_db_path": tmp_path / "local.db",
        "storage_root": tmp_path,
        "data_path": tmp_path / "data",
        "ci_simulation_delay_seconds": 0.0,
        "ci_success_rate": 1.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def config(tmp_path) -> Settings:
    return make_config(tmp_path)


@pytest.fixture(params=["remote", "local"])
async def backend(request, tmp_path):
    """Each contract test runs once per storage backend."""
    cfg = make_config(tmp_path, database_backend=request.param)
    backend = await create_backend(cfg)
    yield backend
    await backend.close()


@pytest.fixture
def file_store() -> RecordingFileStore:
    return RecordingFileStore()
