"""
Upload staging and multipart field parsing for new builds.
"""
import json
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, NamedTuple, Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from ..exceptions import FileTooLargeError, ValidationError
from ..schemas import Platform
from .file_store import CHUNK_SIZE

logger = logging.getLogger(__name__)


class StagedUpload(NamedTuple):
    path: Path
    size: int
    filename: Optional[str]
    content_type: Optional[str]


@asynccontextmanager
async def stage_upload(
    upload: UploadFile, tmp_dir: Path, max_bytes: int
) -> AsyncIterator[StagedUpload]:
    """
    Stream ``upload`` to a temporary file, enforcing ``max_bytes``.

    The temporary file is removed on every exit path, including when the
    size cap is exceeded part-way through.
    """
    await aiofiles.os.makedirs(tmp_dir, exist_ok=True)
    tmp_path = Path(tmp_dir) / f"{uuid.uuid4().hex}.part"
    size = 0
    try:
        async with aiofiles.open(tmp_path, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise FileTooLargeError(
                        f"File exceeds the maximum upload size of "
                        f"{max_bytes // (1024 * 1024)} MB."
                    )
                await out.write(chunk)

        yield StagedUpload(
            path=tmp_path,
            size=size,
            filename=upload.filename,
            content_type=upload.content_type,
        )
    finally:
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)
            logger.debug(f"Removed staged upload {tmp_path}")


def parse_allowed_udids(raw: Optional[str], platform: Platform) -> Optional[List[str]]:
    """
    Parse the ``allowedUDIDs`` form field.

    Only iOS builds carry a device allow-list; for other platforms the
    field is ignored. An empty list means unrestricted.
    """
    if platform != Platform.IOS or raw is None or raw == "":
        return None
    try:
        udids = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError("Invalid format for allowedUDIDs. Expected a JSON array of strings.") from e
    if not isinstance(udids, list) or not all(isinstance(u, str) for u in udids):
        raise ValidationError("Invalid format for allowedUDIDs. Expected a JSON array of strings.")
    return udids or None
