import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from ..backends import (
    Backend,
    get_app_settings,
    get_backend,
    get_config,
    get_request_file_store,
)
from ..config import Settings
from ..exceptions import NotFoundError, ValidationError
from ..repositories import validate_build_data
from ..schemas import (
    AppSettings,
    BuildDetailResponse,
    BuildListResponse,
    Channel,
    DeleteBuildResponse,
    DownloadCountResponse,
    Platform,
    RebuildRequest,
    RebuildResponse,
)
from ..services.background import run_logged
from ..services.file_store import FileStore
from ..services.notifications import notify_new_build
from ..services.rebuild import rebuild
from ..services.retention import RetentionEngine
from ..services.uploads import parse_allowed_udids, stage_upload
from ..utils import format_size

router = APIRouter(prefix="/builds", tags=["builds"])
logger = logging.getLogger(__name__)


@router.get("", response_model=BuildListResponse)
async def list_builds(
    platform: Optional[Platform] = None,
    channel: Optional[Channel] = None,
    backend: Backend = Depends(get_backend),
):
    """List builds, newest first."""
    builds = await backend.builds.list(platform=platform, channel=channel)
    return BuildListResponse(builds=builds)


@router.post("", response_model=BuildDetailResponse, status_code=status.HTTP_201_CREATED)
async def upload_build(
    background_tasks: BackgroundTasks,
    build_file: Optional[UploadFile] = File(None, alias="buildFile"),
    app_name: Optional[str] = Form(None, alias="appName"),
    version_name: Optional[str] = Form(None, alias="versionName"),
    version_code: Optional[str] = Form(None, alias="versionCode"),
    platform: Optional[str] = Form(None),
    channel: Optional[str] = Form(None),
    changelog: Optional[str] = Form(None),
    commit_hash: Optional[str] = Form(None, alias="commitHash"),
    allowed_udids: Optional[str] = Form(None, alias="allowedUDIDs"),
    backend: Backend = Depends(get_backend),
    app_settings: AppSettings = Depends(get_app_settings),
    config: Settings = Depends(get_config),
    file_store: FileStore = Depends(get_request_file_store),
):
    """
    Upload a build binary with its metadata.

    The binary is stored before the record is inserted; if the insert fails
    the stored binary is removed again. Retention for the build's group
    runs after the response is sent.
    """
    build_data = {
        "app_name": app_name,
        "version_name": version_name,
        "version_code": version_code,
        "platform": platform,
        "channel": channel,
        "changelog": changelog,
        "commit_hash": commit_hash or None,
    }
    # Reject bad metadata before touching storage
    validated = validate_build_data(build_data)
    build_data["allowed_udids"] = parse_allowed_udids(allowed_udids, validated.platform)

    if build_file is None or not build_file.filename:
        raise ValidationError("No build file uploaded.")

    async with stage_upload(
        build_file, config.upload_tmp_path, app_settings.max_upload_size_bytes
    ) as staged:
        stored = await file_store.upload(staged.path, staged.filename, staged.content_type)

    build_data.update(
        download_url=stored.url,
        file_name=stored.name,
        file_type=staged.content_type or "application/octet-stream",
        size=format_size(staged.size),
    )
    try:
        build = await backend.builds.create(build_data, app_settings.api_base_url)
    except Exception:
        logger.error(f"Failed to record build, removing stored file {stored.name}")
        await file_store.delete(stored.name)
        raise

    retention = RetentionEngine(backend.builds, file_store)
    background_tasks.add_task(
        run_logged,
        f"retention for {build.app_name}",
        retention.enforce,
        build.app_name,
        build.platform,
        build.channel,
        app_settings,
    )
    if app_settings.notify_on_new_build:
        background_tasks.add_task(
            run_logged, f"new build notification for {build.id}", notify_new_build, build
        )

    return BuildDetailResponse(build=build)


@router.get("/{build_id}", response_model=BuildDetailResponse)
async def get_build(
    build_id: str,
    backend: Backend = Depends(get_backend),
):
    """Get a build by ID; a missing build still answers with a null ``build``."""
    build = await backend.builds.get_by_id(build_id)
    if build is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "build": None,
                "error": f"Build with ID {build_id} not found.",
                "code": NotFoundError.code,
            },
        )
    return BuildDetailResponse(build=build)


@router.delete("/{build_id}", response_model=DeleteBuildResponse)
async def delete_build(
    build_id: str,
    backend: Backend = Depends(get_backend),
    file_store: FileStore = Depends(get_request_file_store),
):
    """Delete a build's backing file, then its record; shared files are kept."""
    build = await backend.builds.require(build_id)

    if build.file_name:
        if await backend.builds.is_file_shared(build):
            logger.info(f"Keeping file {build.file_name}, still referenced by another build")
        else:
            await file_store.delete(build.file_name)

    if not await backend.builds.delete(build_id):
        raise NotFoundError(f"Build with ID {build_id} not found.")

    logger.info(f"Deleted build {build_id}")
    return DeleteBuildResponse(success=True, message=f"Build {build_id} deleted successfully.")


@router.post("/{build_id}/download", response_model=DownloadCountResponse)
async def record_download(
    build_id: str,
    backend: Backend = Depends(get_backend),
):
    """Count one download of a build."""
    build = await backend.builds.increment_download_count(build_id)
    if build is None:
        raise NotFoundError(f"Build with ID {build_id} not found.")
    return DownloadCountResponse(success=True, updated_build=build)


@router.post(
    "/{build_id}/rebuild",
    response_model=RebuildResponse,
    status_code=status.HTTP_201_CREATED,
)
async def rebuild_build(
    build_id: str,
    payload: Optional[RebuildRequest] = None,
    backend: Backend = Depends(get_backend),
    app_settings: AppSettings = Depends(get_app_settings),
):
    """Derive a new build from an existing one without a new binary."""
    if payload is None or not payload.triggered_by_username:
        raise ValidationError("triggeredByUsername is required.")

    new_build = await rebuild(
        backend.builds, build_id, payload.triggered_by_username, app_settings.api_base_url
    )
    return RebuildResponse(message="Build rebuilt successfully.", new_build=new_build)
