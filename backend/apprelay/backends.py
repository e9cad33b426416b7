"""
Storage backend selection.

The backend is chosen once at process start from ``Settings.database_backend``
and handed to routers through FastAPI dependencies; request handlers never
branch on which backend is active.
"""
import logging
from typing import Awaitable, Callable

from fastapi import Depends, Request

from .config import Settings
from .database import create_engine, create_session_factory, init_db
from .exceptions import AppRelayError, SettingsUnavailableError
from .repositories import (
    BuildRepository,
    FeedbackRepository,
    LocalBuildRepository,
    LocalDatabase,
    LocalFeedbackRepository,
    LocalRepositoryRegistry,
    LocalSettingsStore,
    RepositoryRegistry,
    SettingsStore,
    SqlBuildRepository,
    SqlFeedbackRepository,
    SqlRepositoryRegistry,
    SqlSettingsStore,
)
from .schemas import AppSettings
from .services.ci_pipeline import CIPipelineSimulator
from .services.file_store import FileStore, get_file_store

logger = logging.getLogger(__name__)


class Backend:
    """The repositories of one storage backend plus its shutdown hook."""

    def __init__(
        self,
        name: str,
        builds: BuildRepository,
        feedbacks: FeedbackRepository,
        repositories: RepositoryRegistry,
        settings: SettingsStore,
        closer: Callable[[], Awaitable[None]],
    ):
        self.name = name
        self.builds = builds
        self.feedbacks = feedbacks
        self.repositories = repositories
        self.settings = settings
        self._closer = closer

    async def close(self) -> None:
        await self._closer()
        logger.info(f"Closed {self.name} backend")


async def create_backend(config: Settings) -> Backend:
    config.data_path.mkdir(parents=True, exist_ok=True)

    if config.database_backend == "remote":
        engine = create_engine(config.database_url, echo=config.debug)
        await init_db(engine)
        session_factory = create_session_factory(engine)
        logger.info(f"Using remote database backend ({engine.dialect.name})")
        return Backend(
            name="remote",
            builds=SqlBuildRepository(session_factory),
            feedbacks=SqlFeedbackRepository(session_factory),
            repositories=SqlRepositoryRegistry(session_factory),
            settings=SqlSettingsStore(session_factory),
            closer=engine.dispose,
        )

    db = LocalDatabase(config.local_db_path)
    await db.connect()
    logger.info("Using local database backend")
    return Backend(
        name="local",
        builds=LocalBuildRepository(db),
        feedbacks=LocalFeedbackRepository(db),
        repositories=LocalRepositoryRegistry(db),
        settings=LocalSettingsStore(db),
        closer=db.close,
    )


def get_config(request: Request) -> Settings:
    return request.app.state.config


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


async def get_app_settings(backend: Backend = Depends(get_backend)) -> AppSettings:
    """Load operational settings once per request."""
    try:
        return await backend.settings.get()
    except AppRelayError:
        raise
    except Exception as e:
        logger.exception(f"Failed to retrieve application settings: {e}")
        raise SettingsUnavailableError(str(e)) from e


def get_request_file_store(
    app_settings: AppSettings = Depends(get_app_settings),
    config: Settings = Depends(get_config),
) -> FileStore:
    return get_file_store(app_settings, config)


def get_ci_simulator(request: Request) -> CIPipelineSimulator:
    return request.app.state.ci_simulator
