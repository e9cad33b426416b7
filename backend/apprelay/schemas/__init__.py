from .enums import (
    Platform, Channel, BuildStatus, BuildSource, DeletePolicy, QrCodeMode, UiTheme,
)
from .build import (
    BuildResponse,
    BuildCreate,
    BuildUpdate,
    RebuildRequest,
    BuildListResponse,
    BuildDetailResponse,
    DeleteBuildResponse,
    DownloadCountResponse,
    RebuildResponse,
)
from .feedback import (
    FeedbackCreate,
    FeedbackResponse,
    FeedbackCreatedResponse,
    FeedbackListResponse,
)
from .repository import (
    RepositoryCreate,
    RepositoryUpdate,
    RepositoryResponse,
    RepositoryListResponse,
    RepositoryMutationResponse,
    RepositoryDeleteResponse,
)
from .settings import (
    AppSettings,
    SETTINGS_ROW_ID,
    merge_with_defaults,
    sanitize_settings_payload,
    SettingsResponse,
    SettingsUpdateResponse,
)
from .dashboard import VersionDownloads, DashboardStats, DashboardStatsResponse
from .ci import CITriggerRequest, CITriggerResponse

__all__ = [
    "Platform", "Channel", "BuildStatus", "BuildSource", "DeletePolicy",
    "QrCodeMode", "UiTheme",
    "BuildResponse", "BuildCreate", "BuildUpdate", "RebuildRequest",
    "BuildListResponse", "BuildDetailResponse", "DeleteBuildResponse",
    "DownloadCountResponse", "RebuildResponse",
    "FeedbackCreate", "FeedbackResponse", "FeedbackCreatedResponse",
    "FeedbackListResponse",
    "RepositoryCreate", "RepositoryUpdate", "RepositoryResponse",
    "RepositoryListResponse", "RepositoryMutationResponse",
    "RepositoryDeleteResponse",
    "AppSettings", "SETTINGS_ROW_ID", "merge_with_defaults",
    "sanitize_settings_payload", "SettingsResponse", "SettingsUpdateResponse",
    "VersionDownloads", "DashboardStats", "DashboardStatsResponse",
    "CITriggerRequest", "CITriggerResponse",
]
