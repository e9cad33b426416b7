from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Dict, List

from .enums import Platform


class VersionDownloads(BaseModel):
    version_id: str
    app_name: str
    version_name: str
    platform: Platform
    count: int

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class DashboardStats(BaseModel):
    total_builds: int
    downloads_by_version: List[VersionDownloads]
    build_success_ratio: float
    channel_distribution: Dict[str, int]
    platform_distribution: Dict[str, int]

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class DashboardStatsResponse(BaseModel):
    stats: DashboardStats
