from .file_store import (
    FileStore,
    LocalFileStore,
    RemoteFileStore,
    StoredFile,
    get_file_store,
    validate_stored_name,
)
from .retention import RetentionEngine
from .rebuild import get_next_version, derive_rebuild, rebuild
from .dashboard import compute_dashboard_stats
from .ci_pipeline import CIPipelineSimulator
from .background import run_logged

__all__ = [
    "FileStore", "LocalFileStore", "RemoteFileStore", "StoredFile",
    "get_file_store", "validate_stored_name",
    "RetentionEngine",
    "get_next_version", "derive_rebuild", "rebuild",
    "compute_dashboard_stats",
    "CIPipelineSimulator",
    "run_logged",
]
