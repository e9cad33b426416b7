from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..backends import Backend, get_app_settings, get_backend, get_config
from ..config import Settings
from ..exceptions import NotFoundError
from ..services.file_store import LocalFileStore, validate_stored_name

router = APIRouter(prefix="/local-downloads", tags=["downloads"])

APK_MEDIA_TYPE = "application/vnd.android.package-archive"


@router.get("/{filename:path}")
async def download_local_file(
    filename: str,
    backend: Backend = Depends(get_backend),
    config: Settings = Depends(get_config),
):
    """Serve a locally stored build file as an attachment."""
    # Name is checked before settings or the filesystem are touched
    validate_stored_name(filename)
    app_settings = await get_app_settings(backend)

    store = LocalFileStore(
        config.get_local_build_dir(app_settings.local_build_path),
        app_settings.api_base_url,
    )
    file_path = store.resolve_path(filename)

    if not file_path.is_file():
        raise NotFoundError("File not found.")

    media_type = (
        APK_MEDIA_TYPE if file_path.suffix.lower() == ".apk"
        else "application/octet-stream"
    )
    return FileResponse(path=str(file_path), filename=filename, media_type=media_type)
