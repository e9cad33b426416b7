from typing import Iterable

from ..schemas import (
    BuildResponse,
    BuildSource,
    BuildStatus,
    Channel,
    DashboardStats,
    Platform,
    VersionDownloads,
)

TOP_DOWNLOADS = 5


def is_successful(build: BuildResponse) -> bool:
    if build.build_status == BuildStatus.SUCCESS:
        return True
    return (
        build.source == BuildSource.CI_PIPELINE
        and build.pipeline_status == BuildStatus.SUCCESS
    )


def compute_dashboard_stats(builds: Iterable[BuildResponse]) -> DashboardStats:
    """Aggregate counts over every build; distributions list every enum value."""
    builds = list(builds)
    total = len(builds)
    successful = sum(1 for b in builds if is_successful(b))

    channels = {channel.value: 0 for channel in Channel}
    platforms = {platform.value: 0 for platform in Platform}
    for build in builds:
        channels[build.channel.value] += 1
        platforms[build.platform.value] += 1

    downloaded = sorted(
        (b for b in builds if b.download_count > 0),
        key=lambda b: b.download_count,
        reverse=True,
    )
    top = [
        VersionDownloads(
            version_id=b.id,
            app_name=b.app_name,
            version_name=b.version_name,
            platform=b.platform,
            count=b.download_count,
        )
        for b in downloaded[:TOP_DOWNLOADS]
    ]

    return DashboardStats(
        total_builds=total,
        downloads_by_version=top,
        build_success_ratio=successful / total if total else 0,
        channel_distribution=channels,
        platform_distribution=platforms,
    )
