from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List

from ..utils import to_naive_utc
from .enums import Platform, Channel, BuildStatus, BuildSource


class BuildResponse(BaseModel):
    """A build as observed by API clients, identical for both backends."""
    id: str
    app_name: str
    version_name: str
    version_code: str
    platform: Platform
    channel: Channel
    changelog: str
    previous_changelog: Optional[str] = None
    upload_date: datetime
    build_status: BuildStatus
    commit_hash: Optional[str] = None
    download_url: Optional[str] = None
    qr_code_url: Optional[str] = None
    size: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    download_count: int = 0
    source: BuildSource
    ci_build_id: Optional[str] = None
    pipeline_status: Optional[BuildStatus] = None
    ci_logs_url: Optional[str] = None
    triggered_by: Optional[str] = None
    allowed_udids: Optional[List[str]] = Field(default=None, alias="allowedUDIDs")

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class BuildCreate(BaseModel):
    """Fields accepted when inserting a new build record."""
    app_name: str = Field(min_length=1)
    version_name: str = Field(min_length=1)
    version_code: str = Field(min_length=1)
    platform: Platform
    channel: Channel
    changelog: str = Field(min_length=1)
    previous_changelog: Optional[str] = None
    upload_date: Optional[datetime] = None
    build_status: BuildStatus = BuildStatus.SUCCESS
    commit_hash: Optional[str] = None
    download_url: Optional[str] = None
    size: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    download_count: int = Field(default=0, ge=0)
    source: BuildSource = BuildSource.MANUAL_UPLOAD
    ci_build_id: Optional[str] = None
    pipeline_status: Optional[BuildStatus] = None
    ci_logs_url: Optional[str] = None
    triggered_by: Optional[str] = None
    allowed_udids: Optional[List[str]] = Field(default=None, alias="allowedUDIDs")

    class Config:
        populate_by_name = True
        alias_generator = to_camel
        extra = "ignore"

    @field_validator("allowed_udids")
    @classmethod
    def empty_udids_mean_unrestricted(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v or None

    @field_validator("upload_date")
    @classmethod
    def upload_date_as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Both backends store naive UTC
        return to_naive_utc(v) if v else v


class BuildUpdate(BaseModel):
    """
    Partial update applied when a CI pipeline reports back.

    Identity, group key, upload date and download counter are deliberately
    absent: they cannot be changed through a partial update.
    """
    version_name: Optional[str] = None
    version_code: Optional[str] = None
    changelog: Optional[str] = None
    build_status: Optional[BuildStatus] = None
    pipeline_status: Optional[BuildStatus] = None
    commit_hash: Optional[str] = None
    download_url: Optional[str] = None
    size: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    ci_logs_url: Optional[str] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel
        extra = "forbid"

    @field_validator("version_name", "version_code", "changelog", "build_status")
    @classmethod
    def required_columns_not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class RebuildRequest(BaseModel):
    triggered_by_username: Optional[str] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class BuildListResponse(BaseModel):
    builds: List[BuildResponse]


class BuildDetailResponse(BaseModel):
    build: Optional[BuildResponse] = None


class DeleteBuildResponse(BaseModel):
    success: bool
    message: str


class DownloadCountResponse(BaseModel):
    success: bool
    updated_build: Optional[BuildResponse] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class RebuildResponse(BaseModel):
    message: str
    new_build: BuildResponse

    class Config:
        populate_by_name = True
        alias_generator = to_camel
