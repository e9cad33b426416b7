"""
FileStore: binary storage for build artifacts.

Two interchangeable stores: a directory on the local filesystem served back
through ``/api/local-downloads``, and a remote object-storage bucket reached
over its REST API. Stored names are always ``<uuid4>.<ext>`` so they never
collide, whichever store is active.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator, NamedTuple, Optional

import aiofiles
import aiofiles.os
import httpx

from ..config import Settings
from ..exceptions import StorageError, ValidationError
from ..schemas import AppSettings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Prefix inside the bucket / name under the local directory
REMOTE_PREFIX = "builds"


class StoredFile(NamedTuple):
    name: str
    url: str


def validate_stored_name(name: str) -> str:
    """Reject anything that could escape the storage directory."""
    if not name or ".." in name or "/" in name or "\\" in name:
        raise ValidationError("Invalid filename.", code="invalid_filename")
    return name


def generate_stored_name(suggested_name: Optional[str]) -> str:
    suffix = Path(suggested_name or "").suffix
    return f"{uuid.uuid4()}{suffix}"


async def iter_file(path: Path, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


class FileStore(ABC):

    @abstractmethod
    async def upload(
        self, source: Path, suggested_name: Optional[str], mime_type: Optional[str]
    ) -> StoredFile:
        """Persist the staged file at ``source`` under a fresh unique name."""

    @abstractmethod
    async def delete(self, stored_name: str) -> None:
        """Best-effort removal; failures are logged, never raised."""


class LocalFileStore(FileStore):
    def __init__(self, directory: Path, api_base_url: str):
        self.directory = Path(directory)
        self.api_base_url = api_base_url.rstrip("/")

    def download_url(self, stored_name: str) -> str:
        return f"{self.api_base_url}/api/local-downloads/{stored_name}"

    def resolve_path(self, stored_name: str) -> Path:
        return self.directory / validate_stored_name(stored_name)

    async def upload(
        self, source: Path, suggested_name: Optional[str], mime_type: Optional[str]
    ) -> StoredFile:
        name = generate_stored_name(suggested_name)
        dest_path = self.directory / name
        try:
            await aiofiles.os.makedirs(self.directory, exist_ok=True)
            async with aiofiles.open(dest_path, "wb") as out:
                async for chunk in iter_file(source):
                    await out.write(chunk)
        except OSError as e:
            logger.error(f"Failed to store {name} in {self.directory}: {e}")
            raise StorageError(f"Local storage write failed for {name}: {e}") from e

        logger.info(f"Stored build file locally: {dest_path}")
        return StoredFile(name=name, url=self.download_url(name))

    async def delete(self, stored_name: str) -> None:
        try:
            path = self.resolve_path(stored_name)
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
                logger.info(f"Deleted local build file {path}")
            else:
                logger.warning(f"Local build file {path} not found, nothing to delete")
        except Exception as e:
            logger.error(f"Failed to delete local build file {stored_name}: {e}")


class RemoteFileStore(FileStore):
    """
    Object-storage REST client.

    Files live at ``<bucket>/builds/<name>`` and are served from the
    bucket's public URL.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "apikey": self.api_key,
            },
        )

    def public_url(self, stored_name: str) -> str:
        return (
            f"{self.base_url}/storage/v1/object/public/"
            f"{self.bucket}/{REMOTE_PREFIX}/{stored_name}"
        )

    async def upload(
        self, source: Path, suggested_name: Optional[str], mime_type: Optional[str]
    ) -> StoredFile:
        if not self.base_url:
            raise StorageError("Remote storage URL is not configured")

        name = generate_stored_name(suggested_name)
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{REMOTE_PREFIX}/{name}"
        headers = {
            "Content-Type": mime_type or "application/octet-stream",
            "Cache-Control": "3600",
            "x-upsert": "false",
        }
        try:
            async with self._client() as client:
                response = await client.post(url, content=iter_file(source), headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Remote storage rejected upload of {name}: "
                f"{e.response.status_code} {e.response.text}"
            )
            raise StorageError(f"Remote storage upload failed for {name}") from e
        except httpx.HTTPError as e:
            logger.error(f"Remote storage upload of {name} failed: {e}")
            raise StorageError(f"Remote storage upload failed for {name}") from e

        logger.info(f"Uploaded build file to remote storage: {REMOTE_PREFIX}/{name}")
        return StoredFile(name=name, url=self.public_url(name))

    async def delete(self, stored_name: str) -> None:
        if not self.base_url:
            logger.error(f"Remote storage URL is not configured, cannot delete {stored_name}")
            return
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            async with self._client() as client:
                response = await client.request(
                    "DELETE", url, json={"prefixes": [f"{REMOTE_PREFIX}/{stored_name}"]}
                )
                response.raise_for_status()
            logger.info(f"Deleted {REMOTE_PREFIX}/{stored_name} from remote storage")
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete {REMOTE_PREFIX}/{stored_name} from remote storage: {e}")


def get_file_store(app_settings: AppSettings, config: Settings) -> FileStore:
    """Pick the store named by the current operational settings."""
    if app_settings.use_remote_storage:
        return RemoteFileStore(
            base_url=config.remote_storage_url,
            api_key=config.remote_storage_key,
            bucket=config.remote_storage_bucket,
            timeout=config.remote_storage_timeout,
        )
    return LocalFileStore(
        directory=config.get_local_build_dir(app_settings.local_build_path),
        api_base_url=app_settings.api_base_url,
    )
