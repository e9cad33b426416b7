"""
Operational settings value object.

``AppSettings`` is always fully populated: stores hand whatever row they
read to ``merge_with_defaults`` and never expose a partially-defined object.
"""
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .enums import Channel, DeletePolicy, QrCodeMode, UiTheme
from ..utils import utcnow

SETTINGS_ROW_ID = "default-settings-id"


class AppSettings(BaseModel):
    id: str = SETTINGS_ROW_ID

    # Runtime environment
    use_remote_database: bool = True
    use_remote_storage: bool = True
    api_base_url: str = "http://localhost:3000"
    local_build_path: str = "_local_build_storage"

    # Build management & retention
    max_builds_per_group: int = Field(default=10, ge=1)
    delete_policy: DeletePolicy = DeletePolicy.CI_ONLY
    enable_auto_clean: bool = True

    # Feature toggles
    changelog_summary_enabled: bool = True
    feedback_enabled: bool = True
    notify_on_new_build: bool = False
    ci_integration_enabled: bool = True
    build_approval_required: bool = False

    # UI & functional parameters
    qr_code_mode: QrCodeMode = QrCodeMode.DOWNLOAD_LINK
    default_channel: Channel = Channel.BETA
    max_upload_size_mb: int = Field(default=200, ge=1, alias="maxUploadSizeMB")
    ui_theme: UiTheme = UiTheme.DARK

    created_at: datetime = Field(default_factory=utcnow, alias="created_at")

    class Config:
        populate_by_name = True
        alias_generator = to_camel

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


BOOLEAN_FIELDS = (
    "use_remote_database", "use_remote_storage", "enable_auto_clean",
    "changelog_summary_enabled", "feedback_enabled", "notify_on_new_build",
    "ci_integration_enabled", "build_approval_required",
)
STRING_FIELDS = ("api_base_url", "local_build_path")
POSITIVE_INT_FIELDS = ("max_builds_per_group", "max_upload_size_mb")
UPDATABLE_FIELDS = BOOLEAN_FIELDS + STRING_FIELDS + POSITIVE_INT_FIELDS + (
    "delete_policy", "qr_code_mode", "default_channel", "ui_theme",
)


def merge_with_defaults(row: Optional[Mapping[str, Any]]) -> AppSettings:
    """Overlay the non-null stored values on top of the defaults."""
    if not row:
        return AppSettings()
    stored = {
        key: value for key, value in row.items()
        if value is not None and key in AppSettings.model_fields
    }
    return AppSettings(**stored)


def _field_name(key: str) -> Optional[str]:
    if key in AppSettings.model_fields:
        return key
    for name, field in AppSettings.model_fields.items():
        if field.alias == key:
            return name
    return None


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_positive_int(value: Any) -> Optional[int]:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _parse_enum(enum_cls, value: Any):
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def sanitize_settings_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize an admin settings update.

    Accepts camelCase or snake_case keys and returns only recognised,
    well-typed fields keyed by snake_case name. Invalid values are dropped
    rather than rejected so one bad field doesn't discard the whole update.
    """
    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        name = _field_name(key)
        if name in UPDATABLE_FIELDS and value is not None:
            normalized[name] = value

    sanitized: Dict[str, Any] = {}
    for name in BOOLEAN_FIELDS:
        if name in normalized:
            sanitized[name] = _coerce_bool(normalized[name])
    for name in STRING_FIELDS:
        if name in normalized:
            sanitized[name] = str(normalized[name])
    for name in POSITIVE_INT_FIELDS:
        if name in normalized:
            number = _parse_positive_int(normalized[name])
            if number is not None:
                sanitized[name] = number

    if "delete_policy" in normalized:
        sanitized["delete_policy"] = (
            DeletePolicy.ALL if normalized["delete_policy"] == DeletePolicy.ALL.value
            else DeletePolicy.CI_ONLY
        )
    if "qr_code_mode" in normalized:
        sanitized["qr_code_mode"] = (
            QrCodeMode.BUILD_DETAIL
            if normalized["qr_code_mode"] == QrCodeMode.BUILD_DETAIL.value
            else QrCodeMode.DOWNLOAD_LINK
        )
    channel = _parse_enum(Channel, normalized.get("default_channel"))
    if channel is not None:
        sanitized["default_channel"] = channel
    theme = _parse_enum(UiTheme, normalized.get("ui_theme"))
    if theme is not None:
        sanitized["ui_theme"] = theme

    return sanitized


class SettingsResponse(BaseModel):
    settings: AppSettings


class SettingsUpdateResponse(BaseModel):
    settings: AppSettings
    message: str
