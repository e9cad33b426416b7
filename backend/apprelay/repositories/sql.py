"""Remote relational backend on the async SQLAlchemy ORM."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import get_db_context
from ..exceptions import ConflictError, NotFoundError
from ..models import Build, Feedback, MonitoredRepository, SettingsRow
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
from ..utils import utcnow
from .base import BuildRepository, FeedbackRepository, RepositoryRegistry, SettingsStore

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


class SqlBuildRepository(BuildRepository):
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def _insert(self, build: BuildResponse) -> None:
        async with get_db_context(self._session_factory) as db:
            db.add(Build(**build.model_dump()))

    async def _fetch(self, db: AsyncSession, build_id: str) -> Optional[BuildResponse]:
        result = await db.execute(
            select(Build)
            .where(Build.id == build_id)
            .execution_options(populate_existing=True)
        )
        build = result.scalar_one_or_none()
        return BuildResponse.model_validate(build) if build else None

    async def get_by_id(self, build_id: str) -> Optional[BuildResponse]:
        async with get_db_context(self._session_factory) as db:
            return await self._fetch(db, build_id)

    async def list(
        self,
        platform: Optional[Platform] = None,
        channel: Optional[Channel] = None,
    ) -> List[BuildResponse]:
        query = select(Build)
        if platform:
            query = query.where(Build.platform == platform)
        if channel:
            query = query.where(Build.channel == channel)
        query = query.order_by(Build.upload_date.desc())

        async with get_db_context(self._session_factory) as db:
            result = await db.execute(query)
            return [BuildResponse.model_validate(b) for b in result.scalars().all()]

    async def list_group(
        self,
        app_name: str,
        platform: Platform,
        channel: Channel,
        source: Optional[BuildSource] = None,
    ) -> List[BuildResponse]:
        query = select(Build).where(
            Build.app_name == app_name,
            Build.platform == platform,
            Build.channel == channel,
        )
        if source:
            query = query.where(Build.source == source)
        query = query.order_by(Build.upload_date.desc())

        async with get_db_context(self._session_factory) as db:
            result = await db.execute(query)
            return [BuildResponse.model_validate(b) for b in result.scalars().all()]

    async def increment_download_count(self, build_id: str) -> Optional[BuildResponse]:
        async with get_db_context(self._session_factory) as db:
            # Single UPDATE so concurrent downloads never lose an increment
            result = await db.execute(
                update(Build)
                .where(Build.id == build_id)
                .values(download_count=Build.download_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return await self._fetch(db, build_id)

    async def _update(self, build_id: str, values: Dict[str, Any]) -> Optional[BuildResponse]:
        async with get_db_context(self._session_factory) as db:
            result = await db.execute(
                update(Build)
                .where(Build.id == build_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return await self._fetch(db, build_id)

    async def count_by_file_name(self, file_name: str, exclude_id: Optional[str] = None) -> int:
        query = select(func.count()).select_from(Build).where(Build.file_name == file_name)
        if exclude_id:
            query = query.where(Build.id != exclude_id)
        async with get_db_context(self._session_factory) as db:
            return (await db.execute(query)).scalar_one()

    async def delete(self, build_id: str) -> bool:
        async with get_db_context(self._session_factory) as db:
            result = await db.execute(
                delete(Build)
                .where(Build.id == build_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0


def _feedback_response(feedback: Feedback) -> FeedbackResponse:
    return FeedbackResponse(
        id=feedback.id,
        build_id=feedback.build_id,
        user=feedback.user_name,
        comment=feedback.comment,
        timestamp=feedback.created_at,
    )


class SqlFeedbackRepository(FeedbackRepository):
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def create(self, build_id: str, user: str, comment: str) -> FeedbackResponse:
        async with get_db_context(self._session_factory) as db:
            if await db.get(Build, build_id) is None:
                raise NotFoundError(f"Build with ID {build_id} not found.")
            feedback = Feedback(
                build_id=build_id,
                user_name=user,
                comment=comment,
                created_at=utcnow(),
            )
            db.add(feedback)
            await db.flush()
            return _feedback_response(feedback)

    async def list_for_build(self, build_id: str) -> List[FeedbackResponse]:
        async with get_db_context(self._session_factory) as db:
            result = await db.execute(
                select(Feedback)
                .where(Feedback.build_id == build_id)
                .order_by(Feedback.created_at.desc())
            )
            return [_feedback_response(f) for f in result.scalars().all()]


class SqlRepositoryRegistry(RepositoryRegistry):
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def list(self) -> List[RepositoryResponse]:
        async with get_db_context(self._session_factory) as db:
            result = await db.execute(
                select(MonitoredRepository).order_by(MonitoredRepository.repo_url)
            )
            return [RepositoryResponse.model_validate(r) for r in result.scalars().all()]

    async def get(self, repository_id: str) -> Optional[RepositoryResponse]:
        async with get_db_context(self._session_factory) as db:
            repo = await db.get(MonitoredRepository, repository_id)
            return RepositoryResponse.model_validate(repo) if repo else None

    async def create(self, data: RepositoryCreate) -> RepositoryResponse:
        repo = MonitoredRepository(
            repo_url=data.repo_url,
            default_branch=data.default_branch,
            default_platform=data.default_platform,
            default_channel=data.default_channel,
            auto_trigger_enabled=(
                True if data.auto_trigger_enabled is None else data.auto_trigger_enabled
            ),
            created_at=utcnow(),
        )
        try:
            async with get_db_context(self._session_factory) as db:
                db.add(repo)
                await db.flush()
                response = RepositoryResponse.model_validate(repo)
        except IntegrityError as e:
            raise ConflictError(
                f"Repository with URL {data.repo_url} is already monitored."
            ) from e
        return response

    async def update(
        self, repository_id: str, data: RepositoryUpdate
    ) -> Optional[RepositoryResponse]:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        try:
            async with get_db_context(self._session_factory) as db:
                repo = await db.get(MonitoredRepository, repository_id)
                if repo is None:
                    return None
                for key, value in changes.items():
                    setattr(repo, key, value)
                repo.updated_at = utcnow()
                await db.flush()
                response = RepositoryResponse.model_validate(repo)
        except IntegrityError as e:
            raise ConflictError(
                f"Repository with URL {changes.get('repo_url')} is already monitored."
            ) from e
        return response

    async def delete(self, repository_id: str) -> bool:
        async with get_db_context(self._session_factory) as db:
            result = await db.execute(
                delete(MonitoredRepository).where(MonitoredRepository.id == repository_id)
            )
            return result.rowcount > 0


class SqlSettingsStore(SettingsStore):
    forced = {"use_remote_database": True}

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def _read_row(self) -> Optional[Dict[str, Any]]:
        async with get_db_context(self._session_factory) as db:
            row = await db.get(SettingsRow, SETTINGS_ROW_ID, populate_existing=True)
            if row is None:
                return None
            return {
                column.key: getattr(row, column.key)
                for column in SettingsRow.__table__.columns
            }

    async def _insert_row(self, values: Dict[str, Any]) -> None:
        try:
            async with get_db_context(self._session_factory) as db:
                db.add(SettingsRow(id=SETTINGS_ROW_ID, **values))
        except IntegrityError:
            logger.info("Settings row was initialized concurrently")

    async def _write_fields(self, values: Dict[str, Any]) -> None:
        async with get_db_context(self._session_factory) as db:
            await db.execute(
                update(SettingsRow)
                .where(SettingsRow.id == SETTINGS_ROW_ID)
                .values(**values)
            )
