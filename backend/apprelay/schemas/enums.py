from enum import Enum


class Platform(str, Enum):
    IOS = "iOS"
    ANDROID = "Android"


class Channel(str, Enum):
    BETA = "Beta"
    STAGING = "Staging"
    PRODUCTION = "Production"


class BuildStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"
    IN_PROGRESS = "In Progress"


class BuildSource(str, Enum):
    MANUAL_UPLOAD = "Manual Upload"
    CI_PIPELINE = "CI Pipeline"


class DeletePolicy(str, Enum):
    CI_ONLY = "CIOnly"
    ALL = "All"


class QrCodeMode(str, Enum):
    DOWNLOAD_LINK = "DownloadLink"
    BUILD_DETAIL = "BuildDetail"


class UiTheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"
