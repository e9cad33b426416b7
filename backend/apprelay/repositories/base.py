"""
Repository contracts shared by the remote and local backends.

Validation, id assignment and timestamping live here so both backends
produce identical records; subclasses only implement persistence.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import AppRelayError, NotFoundError, SettingsUnavailableError, ValidationError
from ..schemas import (
    AppSettings,
    BuildCreate,
    BuildResponse,
    BuildSource,
    BuildUpdate,
    Channel,
    FeedbackResponse,
    Platform,
    RepositoryCreate,
    RepositoryResponse,
    RepositoryUpdate,
    merge_with_defaults,
)
from ..schemas.settings import UPDATABLE_FIELDS
from ..utils import utcnow

logger = logging.getLogger(__name__)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        parts.append(f"{field}: {error['msg']}")
    return "; ".join(parts)


def validate_build_data(build_data: Mapping[str, Any]) -> BuildCreate:
    try:
        return BuildCreate.model_validate(dict(build_data))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid build data: {_describe(e)}") from e


def prepare_new_build(build_data: Mapping[str, Any], api_base_url: str) -> BuildResponse:
    """
    Validate incoming build data and materialize the full record.

    Assigns a fresh id, stamps the upload date when absent and derives the
    QR code URL from the id.
    """
    data = validate_build_data(build_data)

    build_id = str(uuid.uuid4())
    values = data.model_dump()
    values["upload_date"] = data.upload_date or utcnow()
    return BuildResponse(
        id=build_id,
        qr_code_url=f"{api_base_url.rstrip('/')}/builds/{build_id}/qr",
        **values,
    )


def validate_build_update(partial: Mapping[str, Any]) -> Dict[str, Any]:
    """Return only the explicitly provided, mutable fields of ``partial``."""
    try:
        update = BuildUpdate.model_validate(dict(partial))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid build update: {_describe(e)}") from e
    return update.model_dump(exclude_unset=True)


def to_storage_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class BuildRepository(ABC):
    """CRUD and query operations over build records."""

    async def create(self, build_data: Mapping[str, Any], api_base_url: str) -> BuildResponse:
        build = prepare_new_build(build_data, api_base_url)
        await self._insert(build)
        logger.info(
            f"Created build {build.id} ({build.app_name} {build.version_name} "
            f"{build.platform.value}/{build.channel.value})"
        )
        return build

    async def require(self, build_id: str) -> BuildResponse:
        build = await self.get_by_id(build_id)
        if build is None:
            raise NotFoundError(f"Build with ID {build_id} not found.")
        return build

    async def update_fields(
        self, build_id: str, partial: Mapping[str, Any]
    ) -> Optional[BuildResponse]:
        values = validate_build_update(partial)
        if not values:
            return await self.get_by_id(build_id)
        return await self._update(build_id, values)

    async def is_file_shared(self, build: BuildResponse) -> bool:
        """Whether another record (e.g. a rebuild) still points at this build's file."""
        if not build.file_name:
            return False
        return await self.count_by_file_name(build.file_name, exclude_id=build.id) > 0

    @abstractmethod
    async def _insert(self, build: BuildResponse) -> None:
        ...

    @abstractmethod
    async def _update(self, build_id: str, values: Dict[str, Any]) -> Optional[BuildResponse]:
        ...

    @abstractmethod
    async def get_by_id(self, build_id: str) -> Optional[BuildResponse]:
        ...

    @abstractmethod
    async def list(
        self,
        platform: Optional[Platform] = None,
        channel: Optional[Channel] = None,
    ) -> List[BuildResponse]:
        """Builds ordered by upload date, newest first; filters are ANDed."""

    @abstractmethod
    async def list_group(
        self,
        app_name: str,
        platform: Platform,
        channel: Channel,
        source: Optional[BuildSource] = None,
    ) -> List[BuildResponse]:
        """Builds of one (app, platform, channel) group, newest first."""

    @abstractmethod
    async def increment_download_count(self, build_id: str) -> Optional[BuildResponse]:
        """Atomically add one download; ``None`` when the build doesn't exist."""

    @abstractmethod
    async def count_by_file_name(self, file_name: str, exclude_id: Optional[str] = None) -> int:
        """Number of records whose ``file_name`` matches, optionally skipping one id."""

    @abstractmethod
    async def delete(self, build_id: str) -> bool:
        """Remove the record (feedback cascades); ``False`` if it didn't exist."""


class FeedbackRepository(ABC):

    @abstractmethod
    async def create(self, build_id: str, user: str, comment: str) -> FeedbackResponse:
        ...

    @abstractmethod
    async def list_for_build(self, build_id: str) -> List[FeedbackResponse]:
        ...


class RepositoryRegistry(ABC):
    """Source repositories eligible to auto-trigger CI builds."""

    @abstractmethod
    async def list(self) -> List[RepositoryResponse]:
        ...

    @abstractmethod
    async def get(self, repository_id: str) -> Optional[RepositoryResponse]:
        ...

    @abstractmethod
    async def create(self, data: RepositoryCreate) -> RepositoryResponse:
        ...

    @abstractmethod
    async def update(
        self, repository_id: str, data: RepositoryUpdate
    ) -> Optional[RepositoryResponse]:
        ...

    @abstractmethod
    async def delete(self, repository_id: str) -> bool:
        ...


class SettingsStore(ABC):
    """
    Singleton settings row with merge-with-defaults reads and partial writes.

    ``forced`` holds values the active backend imposes on every read; a
    stored row that disagrees is corrected and persisted.
    """

    forced: Dict[str, Any] = {}

    async def get(self) -> AppSettings:
        try:
            row = await self._read_row()
            if row is None:
                logger.warning("No settings row found. Initializing with defaults.")
                defaults = AppSettings(**self.forced)
                await self._insert_row(self._storage_values(defaults, UPDATABLE_FIELDS))
                row = await self._read_row()
            settings = merge_with_defaults(row)
        except AppRelayError:
            raise
        except Exception as e:
            logger.exception(f"Failed to load settings: {e}")
            raise SettingsUnavailableError(f"Failed to load settings: {e}") from e

        corrections = {
            key: value for key, value in self.forced.items()
            if getattr(settings, key) != value
        }
        if corrections:
            logger.warning(f"Stored settings disagree with active backend, forcing {corrections}")
            settings = await self.update(corrections)
        return settings

    async def update(self, changes: Mapping[str, Any]) -> AppSettings:
        """
        Merge ``changes`` over the current settings and persist only the
        changed keys, so concurrent writers touching different fields
        don't overwrite each other.
        """
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        try:
            row = await self._read_row()
            if row is None:
                await self._insert_row(
                    self._storage_values(AppSettings(**self.forced), UPDATABLE_FIELDS)
                )
                row = await self._read_row()
            current = merge_with_defaults(row)
            try:
                merged = AppSettings(**{**current.model_dump(), **changes})
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid settings: {_describe(e)}") from e
            values = self._storage_values(merged, changes.keys())
            values["created_at"] = utcnow()
            await self._write_fields(values)
            row = await self._read_row()
            return merge_with_defaults(row)
        except AppRelayError:
            raise
        except Exception as e:
            logger.exception(f"Failed to update settings: {e}")
            raise SettingsUnavailableError(f"Failed to update settings: {e}") from e

    @staticmethod
    def _storage_values(settings: AppSettings, keys) -> Dict[str, Any]:
        values = {key: to_storage_value(getattr(settings, key)) for key in keys}
        values["created_at"] = settings.created_at
        return values

    @abstractmethod
    async def _read_row(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def _insert_row(self, values: Dict[str, Any]) -> None:
        """Insert the singleton row; a concurrent insert that wins is fine."""

    @abstractmethod
    async def _write_fields(self, values: Dict[str, Any]) -> None:
        ...
