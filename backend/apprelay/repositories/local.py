"""
Embedded local backend on a single aiosqlite connection.

Tables and columns match the relational backend. SQLite has no boolean or
array types, so booleans are stored as 0/1, ``allowed_udids`` as JSON text
and timestamps as ISO-8601 text. The ``_row_to_*`` mappers convert back;
nothing outside this module sees the stored representation.
"""
import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from ..exceptions import ConflictError, NotFoundError
from ..schemas import (
    SETTINGS_ROW_ID,
    BuildResponse,
    BuildSource,
    Channel,
    FeedbackResponse,
    Platform,
    RepositoryCreate,
    RepositoryResponse,
    RepositoryUpdate,
)
from ..schemas.settings import BOOLEAN_FIELDS
from ..utils import utcnow
from .base import (
    BuildRepository,
    FeedbackRepository,
    RepositoryRegistry,
    SettingsStore,
    to_storage_value,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS builds (
    id TEXT PRIMARY KEY,
    app_name TEXT NOT NULL,
    platform TEXT NOT NULL,
    channel TEXT NOT NULL,
    version_name TEXT NOT NULL,
    version_code TEXT NOT NULL,
    changelog TEXT NOT NULL,
    previous_changelog TEXT,
    upload_date TEXT NOT NULL,
    build_status TEXT NOT NULL,
    commit_hash TEXT,
    download_url TEXT,
    qr_code_url TEXT,
    size TEXT,
    file_name TEXT,
    file_type TEXT,
    download_count INTEGER NOT NULL DEFAULT 0,
    source TEXT NOT NULL,
    ci_build_id TEXT,
    pipeline_status TEXT,
    ci_logs_url TEXT,
    triggered_by TEXT,
    allowed_udids TEXT
);
CREATE INDEX IF NOT EXISTS ix_builds_platform_channel ON builds (platform, channel);
CREATE INDEX IF NOT EXISTS ix_builds_upload_date ON builds (upload_date);

CREATE TABLE IF NOT EXISTS feedbacks (
    id TEXT PRIMARY KEY,
    build_id TEXT NOT NULL REFERENCES builds (id) ON DELETE CASCADE,
    user_name TEXT NOT NULL,
    comment TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_feedbacks_build_id ON feedbacks (build_id);

CREATE TABLE IF NOT EXISTS monitored_repositories (
    id TEXT PRIMARY KEY,
    repo_url TEXT NOT NULL UNIQUE,
    default_branch TEXT NOT NULL,
    default_platform TEXT NOT NULL,
    default_channel TEXT NOT NULL,
    auto_trigger_enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS settings (
    id TEXT PRIMARY KEY
);
"""

# Columns added to ``settings`` when missing, so older databases upgrade in place
SETTINGS_COLUMNS = {
    "use_remote_database": "INTEGER",
    "use_remote_storage": "INTEGER",
    "api_base_url": "TEXT",
    "local_build_path": "TEXT",
    "max_builds_per_group": "INTEGER",
    "delete_policy": "TEXT",
    "enable_auto_clean": "INTEGER",
    "changelog_summary_enabled": "INTEGER",
    "feedback_enabled": "INTEGER",
    "notify_on_new_build": "INTEGER",
    "ci_integration_enabled": "INTEGER",
    "build_approval_required": "INTEGER",
    "qr_code_mode": "TEXT",
    "default_channel": "TEXT",
    "max_upload_size_mb": "INTEGER",
    "ui_theme": "TEXT",
    "created_at": "TEXT",
}

BUILD_COLUMNS = (
    "id", "app_name", "platform", "channel", "version_name", "version_code",
    "changelog", "previous_changelog", "upload_date", "build_status",
    "commit_hash", "download_url", "qr_code_url", "size", "file_name",
    "file_type", "download_count", "source", "ci_build_id", "pipeline_status",
    "ci_logs_url", "triggered_by", "allowed_udids",
)
REPOSITORY_COLUMNS = (
    "repo_url", "default_branch", "default_platform", "default_channel",
    "auto_trigger_enabled",
)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_column(key: str, value: Any) -> Any:
    """Convert a domain value to its stored SQLite representation."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _to_text(value)
    if isinstance(value, bool):
        return 1 if value else 0
    if key == "allowed_udids":
        return json.dumps(list(value))
    return to_storage_value(value)


def _row_to_build(row: aiosqlite.Row) -> BuildResponse:
    data = {key: row[key] for key in row.keys()}
    data["upload_date"] = _from_text(data["upload_date"])
    if data["allowed_udids"]:
        data["allowed_udids"] = json.loads(data["allowed_udids"])
    return BuildResponse.model_validate(data)


def _row_to_feedback(row: aiosqlite.Row) -> FeedbackResponse:
    return FeedbackResponse(
        id=row["id"],
        build_id=row["build_id"],
        user=row["user_name"],
        comment=row["comment"],
        timestamp=_from_text(row["created_at"]),
    )


def _row_to_repository(row: aiosqlite.Row) -> RepositoryResponse:
    return RepositoryResponse(
        id=row["id"],
        repo_url=row["repo_url"],
        default_branch=row["default_branch"],
        default_platform=row["default_platform"],
        default_channel=row["default_channel"],
        auto_trigger_enabled=bool(row["auto_trigger_enabled"]),
        created_at=_from_text(row["created_at"]),
        updated_at=_from_text(row["updated_at"]),
    )


def _row_to_settings(row: aiosqlite.Row) -> Dict[str, Any]:
    data = {key: row[key] for key in row.keys()}
    for key in BOOLEAN_FIELDS:
        if data.get(key) is not None:
            data[key] = bool(data[key])
    data["created_at"] = _from_text(data.get("created_at"))
    return data


class LocalDatabase:
    """Owns the embedded database connection and its schema."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Local database is not connected")
        return self._conn

    async def connect(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit: every statement is its own transaction
        self._conn = await aiosqlite.connect(self.path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.executescript(SCHEMA)
        await self._upgrade_settings_table()
        logger.info(f"Local database ready at {self.path}")

    async def _upgrade_settings_table(self) -> None:
        async with self.conn.execute("PRAGMA table_info(settings)") as cursor:
            existing = {row["name"] for row in await cursor.fetchall()}
        for column, column_type in SETTINGS_COLUMNS.items():
            if column not in existing:
                logger.info(f"Adding missing settings column {column}")
                await self.conn.execute(
                    f"ALTER TABLE settings ADD COLUMN {column} {column_type}"
                )

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def fetch_one(self, sql: str, params=()) -> Optional[aiosqlite.Row]:
        async with self.conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def fetch_all(self, sql: str, params=()) -> List[aiosqlite.Row]:
        async with self.conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def execute(self, sql: str, params=()) -> int:
        """Run a write statement and return the affected row count."""
        async with self.conn.execute(sql, params) as cursor:
            return cursor.rowcount


class LocalBuildRepository(BuildRepository):
    def __init__(self, db: LocalDatabase):
        self._db = db

    async def _insert(self, build: BuildResponse) -> None:
        values = build.model_dump()
        placeholders = ", ".join("?" for _ in BUILD_COLUMNS)
        await self._db.execute(
            f"INSERT INTO builds ({', '.join(BUILD_COLUMNS)}) VALUES ({placeholders})",
            [_to_column(key, values[key]) for key in BUILD_COLUMNS],
        )

    async def get_by_id(self, build_id: str) -> Optional[BuildResponse]:
        row = await self._db.fetch_one("SELECT * FROM builds WHERE id = ?", (build_id,))
        return _row_to_build(row) if row else None

    async def list(
        self,
        platform: Optional[Platform] = None,
        channel: Optional[Channel] = None,
    ) -> List[BuildResponse]:
        clauses, params = [], []
        if platform:
            clauses.append("platform = ?")
            params.append(Platform(platform).value)
        if channel:
            clauses.append("channel = ?")
            params.append(Channel(channel).value)
        sql = "SELECT * FROM builds"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY upload_date DESC"
        return [_row_to_build(row) for row in await self._db.fetch_all(sql, params)]

    async def list_group(
        self,
        app_name: str,
        platform: Platform,
        channel: Channel,
        source: Optional[BuildSource] = None,
    ) -> List[BuildResponse]:
        sql = "SELECT * FROM builds WHERE app_name = ? AND platform = ? AND channel = ?"
        params = [app_name, Platform(platform).value, Channel(channel).value]
        if source:
            sql += " AND source = ?"
            params.append(BuildSource(source).value)
        sql += " ORDER BY upload_date DESC"
        return [_row_to_build(row) for row in await self._db.fetch_all(sql, params)]

    async def increment_download_count(self, build_id: str) -> Optional[BuildResponse]:
        updated = await self._db.execute(
            "UPDATE builds SET download_count = download_count + 1 WHERE id = ?",
            (build_id,),
        )
        if not updated:
            return None
        return await self.get_by_id(build_id)

    async def _update(self, build_id: str, values: Dict[str, Any]) -> Optional[BuildResponse]:
        # Keys come from BuildUpdate, never from raw input
        assignments = ", ".join(f"{key} = ?" for key in values)
        params = [_to_column(key, value) for key, value in values.items()]
        updated = await self._db.execute(
            f"UPDATE builds SET {assignments} WHERE id = ?", params + [build_id]
        )
        if not updated:
            return None
        return await self.get_by_id(build_id)

    async def count_by_file_name(self, file_name: str, exclude_id: Optional[str] = None) -> int:
        sql = "SELECT COUNT(*) FROM builds WHERE file_name = ?"
        params = [file_name]
        if exclude_id:
            sql += " AND id != ?"
            params.append(exclude_id)
        row = await self._db.fetch_one(sql, params)
        return row[0]

    async def delete(self, build_id: str) -> bool:
        deleted = await self._db.execute("DELETE FROM builds WHERE id = ?", (build_id,))
        return deleted > 0


class LocalFeedbackRepository(FeedbackRepository):
    def __init__(self, db: LocalDatabase):
        self._db = db

    async def create(self, build_id: str, user: str, comment: str) -> FeedbackResponse:
        if await self._db.fetch_one("SELECT id FROM builds WHERE id = ?", (build_id,)) is None:
            raise NotFoundError(f"Build with ID {build_id} not found.")
        feedback = FeedbackResponse(
            id=str(uuid.uuid4()),
            build_id=build_id,
            user=user,
            comment=comment,
            timestamp=utcnow(),
        )
        await self._db.execute(
            "INSERT INTO feedbacks (id, build_id, user_name, comment, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (feedback.id, build_id, user, comment, _to_text(feedback.timestamp)),
        )
        return feedback

    async def list_for_build(self, build_id: str) -> List[FeedbackResponse]:
        rows = await self._db.fetch_all(
            "SELECT * FROM feedbacks WHERE build_id = ? ORDER BY created_at DESC",
            (build_id,),
        )
        return [_row_to_feedback(row) for row in rows]


class LocalRepositoryRegistry(RepositoryRegistry):
    def __init__(self, db: LocalDatabase):
        self._db = db

    async def list(self) -> List[RepositoryResponse]:
        rows = await self._db.fetch_all(
            "SELECT * FROM monitored_repositories ORDER BY repo_url ASC"
        )
        return [_row_to_repository(row) for row in rows]

    async def get(self, repository_id: str) -> Optional[RepositoryResponse]:
        row = await self._db.fetch_one(
            "SELECT * FROM monitored_repositories WHERE id = ?", (repository_id,)
        )
        return _row_to_repository(row) if row else None

    async def create(self, data: RepositoryCreate) -> RepositoryResponse:
        repository_id = str(uuid.uuid4())
        auto_trigger = True if data.auto_trigger_enabled is None else data.auto_trigger_enabled
        try:
            await self._db.execute(
                "INSERT INTO monitored_repositories (id, repo_url, default_branch, "
                "default_platform, default_channel, auto_trigger_enabled, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    repository_id,
                    data.repo_url,
                    data.default_branch,
                    data.default_platform.value,
                    data.default_channel.value,
                    1 if auto_trigger else 0,
                    _to_text(utcnow()),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Repository with URL {data.repo_url} is already monitored."
            ) from e
        return await self.get(repository_id)

    async def update(
        self, repository_id: str, data: RepositoryUpdate
    ) -> Optional[RepositoryResponse]:
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items()
            if key in REPOSITORY_COLUMNS
        }
        changes["updated_at"] = utcnow()
        assignments = ", ".join(f"{key} = ?" for key in changes)
        params = [_to_column(key, value) for key, value in changes.items()]
        try:
            updated = await self._db.execute(
                f"UPDATE monitored_repositories SET {assignments} WHERE id = ?",
                params + [repository_id],
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Repository with URL {changes.get('repo_url')} is already monitored."
            ) from e
        if not updated:
            return None
        return await self.get(repository_id)

    async def delete(self, repository_id: str) -> bool:
        deleted = await self._db.execute(
            "DELETE FROM monitored_repositories WHERE id = ?", (repository_id,)
        )
        return deleted > 0


class LocalSettingsStore(SettingsStore):
    forced = {"use_remote_database": False, "use_remote_storage": False}

    def __init__(self, db: LocalDatabase):
        self._db = db

    async def _read_row(self) -> Optional[Dict[str, Any]]:
        row = await self._db.fetch_one(
            "SELECT * FROM settings WHERE id = ?", (SETTINGS_ROW_ID,)
        )
        return _row_to_settings(row) if row else None

    async def _insert_row(self, values: Dict[str, Any]) -> None:
        columns = ["id"] + [key for key in values if key in SETTINGS_COLUMNS]
        params = [SETTINGS_ROW_ID] + [_to_column(key, values[key]) for key in columns[1:]]
        placeholders = ", ".join("?" for _ in columns)
        await self._db.execute(
            f"INSERT OR IGNORE INTO settings ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )

    async def _write_fields(self, values: Dict[str, Any]) -> None:
        columns = [key for key in values if key in SETTINGS_COLUMNS]
        assignments = ", ".join(f"{key} = ?" for key in columns)
        params = [_to_column(key, values[key]) for key in columns]
        await self._db.execute(
            f"UPDATE settings SET {assignments} WHERE id = ?", params + [SETTINGS_ROW_ID]
        )
