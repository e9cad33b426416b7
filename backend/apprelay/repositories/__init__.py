from .base import (
    BuildRepository,
    FeedbackRepository,
    RepositoryRegistry,
    SettingsStore,
    prepare_new_build,
    validate_build_data,
)
from .sql import (
    SqlBuildRepository,
    SqlFeedbackRepository,
    SqlRepositoryRegistry,
    SqlSettingsStore,
)
from .local import (
    LocalDatabase,
    LocalBuildRepository,
    LocalFeedbackRepository,
    LocalRepositoryRegistry,
    LocalSettingsStore,
)

__all__ = [
    "BuildRepository",
    "FeedbackRepository",
    "RepositoryRegistry",
    "SettingsStore",
    "prepare_new_build",
    "validate_build_data",
    "SqlBuildRepository",
    "SqlFeedbackRepository",
    "SqlRepositoryRegistry",
    "SqlSettingsStore",
    "LocalDatabase",
    "LocalBuildRepository",
    "LocalFeedbackRepository",
    "LocalRepositoryRegistry",
    "LocalSettingsStore",
]
