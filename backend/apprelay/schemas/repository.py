from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from .enums import Platform, Channel


class RepositoryCreate(BaseModel):
    repo_url: str
    default_branch: str
    default_platform: Platform
    default_channel: Channel
    auto_trigger_enabled: Optional[bool] = None


class RepositoryUpdate(BaseModel):
    repo_url: Optional[str] = None
    default_branch: Optional[str] = None
    default_platform: Optional[Platform] = None
    default_channel: Optional[Channel] = None
    auto_trigger_enabled: Optional[bool] = None


class RepositoryResponse(BaseModel):
    id: str
    repo_url: str
    default_branch: str
    default_platform: Platform
    default_channel: Channel
    auto_trigger_enabled: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RepositoryListResponse(BaseModel):
    repositories: List[RepositoryResponse]


class RepositoryMutationResponse(BaseModel):
    repository: RepositoryResponse
    message: str


class RepositoryDeleteResponse(BaseModel):
    success: bool
    message: str
