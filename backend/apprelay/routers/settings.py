import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..backends import Backend, get_app_settings, get_backend
from ..schemas import (
    AppSettings,
    SettingsResponse,
    SettingsUpdateResponse,
    sanitize_settings_payload,
)

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("", response_model=SettingsResponse)
async def get_settings_endpoint(app_settings: AppSettings = Depends(get_app_settings)):
    """Current operational settings, fully populated."""
    return SettingsResponse(settings=app_settings)


@router.put("", response_model=SettingsUpdateResponse)
async def update_settings(
    payload: Dict[str, Any] = Body(...),
    backend: Backend = Depends(get_backend),
):
    """
    Update operational settings.

    Unknown keys and invalid values are dropped; only the remaining fields
    are written, so fields not mentioned keep their stored values.
    """
    changes = sanitize_settings_payload(payload)
    await backend.settings.update(changes)
    # The active backend's selector flags always win over the request
    settings = await backend.settings.get()
    logger.info(f"Settings updated: {sorted(changes)}")
    return SettingsUpdateResponse(settings=settings, message="Settings updated successfully.")
