from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path
from typing import List, Literal

# Get the project root (parent of backend/)
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: List[str] = ["*"]

    # Backend selection - fixed for the lifetime of the process
    database_backend: Literal["remote", "local"] = "local"

    # Remote relational store (postgresql+asyncpg in production)
    database_url: str = f"sqlite+aiosqlite:///{PROJECT_ROOT}/data/apprelay.db"

    # Embedded local store
    local_db_path: Path = PROJECT_ROOT / "data" / "local.db"

    # Paths - localBuildPath from the settings row is resolved against storage_root
    storage_root: Path = PROJECT_ROOT
    data_path: Path = PROJECT_ROOT / "data"

    # Remote object storage (REST)
    remote_storage_url: str = ""
    remote_storage_key: str = ""
    remote_storage_bucket: str = "builds"
    remote_storage_timeout: float = 60.0

    # CI simulation
    ci_simulation_delay_seconds: float = 15.0
    ci_success_rate: float = 0.8

    class Config:
        env_file = str(PROJECT_ROOT / "config" / ".env")
        env_file_encoding = "utf-8"
        env_prefix = "APPRELAY_"

    @property
    def upload_tmp_path(self) -> Path:
        return self.data_path / "tmp"

    def get_local_build_dir(self, local_build_path: str) -> Path:
        """Resolve the directory that holds locally stored build files."""
        return (self.storage_root / local_build_path).resolve()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
