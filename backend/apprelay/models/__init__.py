from .base import Base
from .build import Build
from .feedback import Feedback
from .monitored_repository import MonitoredRepository
from .app_settings import SettingsRow

__all__ = [
    "Base", "Build", "Feedback", "MonitoredRepository", "SettingsRow",
]
