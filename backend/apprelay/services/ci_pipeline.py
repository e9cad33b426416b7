"""
CIPipelineSimulator: stands in for an external CI system.

A trigger inserts a placeholder build immediately. After a delay the
simulated pipeline reports back and the placeholder is patched with the
outcome through ``BuildRepository.update_fields``.
"""
import asyncio
import logging
import random
import uuid
from typing import Optional, Set

from ..exceptions import ValidationError
from ..repositories import BuildRepository
from ..schemas import (
    AppSettings,
    BuildResponse,
    BuildSource,
    BuildStatus,
    Channel,
    CITriggerRequest,
    Platform,
)

logger = logging.getLogger(__name__)


def artifact_extension(platform: Platform) -> str:
    return "ipa" if platform == Platform.IOS else "apk"


class CIPipelineSimulator:
    """Tracks in-flight simulated pipelines so they can be cancelled on shutdown."""

    def __init__(
        self,
        delay_seconds: float = 15.0,
        success_rate: float = 0.8,
        rng: Optional[random.Random] = None,
    ):
        self.delay_seconds = delay_seconds
        self.success_rate = success_rate
        self._rng = rng or random.Random()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def trigger(
        self,
        builds: BuildRepository,
        request: CITriggerRequest,
        settings: AppSettings,
    ) -> BuildResponse:
        if not all([
            request.project_name, request.branch, request.triggered_by_username,
            request.platform, request.channel,
        ]):
            raise ValidationError(
                "Missing required fields: projectName, branch, "
                "triggeredByUsername, platform, channel"
            )
        try:
            platform = Platform(request.platform)
            channel = Channel(request.channel)
        except ValueError as e:
            raise ValidationError("Invalid platform or channel value.") from e

        ci_build_id = f"ci-{uuid.uuid4().hex[:8]}"
        short_id = ci_build_id[:5]
        branch = request.branch
        api_base_url = settings.api_base_url.rstrip("/")

        placeholder = await builds.create(
            {
                "app_name": request.project_name,
                "version_name": f"0.0.0-{branch}-{short_id}",
                "version_code": "0",
                "platform": platform,
                "channel": channel,
                "changelog": (
                    f"Build triggered from branch: {branch} by "
                    f"{request.triggered_by_username}. Awaiting CI completion."
                ),
                "build_status": BuildStatus.SUCCESS,
                "pipeline_status": BuildStatus.IN_PROGRESS,
                "commit_hash": branch,
                "size": "N/A",
                "file_name": f"{ci_build_id}.placeholder",
                "file_type": "application/octet-stream",
                "download_url": f"{api_base_url}/api/local-downloads/{ci_build_id}.placeholder",
                "source": BuildSource.CI_PIPELINE,
                "ci_build_id": ci_build_id,
                "triggered_by": request.triggered_by_username,
                "ci_logs_url": f"{api_base_url}/ci/logs/{ci_build_id}",
            },
            settings.api_base_url,
        )
        logger.info(
            f"CI build {ci_build_id} triggered for {request.project_name} "
            f"on {branch} by {request.triggered_by_username}"
        )

        task = asyncio.create_task(
            self._complete(builds, placeholder, branch, api_base_url)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return placeholder

    async def _complete(
        self,
        builds: BuildRepository,
        placeholder: BuildResponse,
        branch: str,
        api_base_url: str,
    ) -> None:
        await asyncio.sleep(self.delay_seconds)

        ci_build_id = placeholder.ci_build_id
        succeeded = self._rng.random() < self.success_rate
        status = BuildStatus.SUCCESS if succeeded else BuildStatus.FAILED
        fields = {
            "pipeline_status": status,
            "build_status": status,
            "changelog": (
                f"{placeholder.changelog}\nCI process "
                f"{'completed successfully.' if succeeded else 'failed.'}"
            ),
        }
        if succeeded:
            artifact = f"{ci_build_id}.{artifact_extension(placeholder.platform)}"
            fields.update(
                version_name=f"1.0.0-{branch}-{ci_build_id[:5]}",
                version_code=str(self._rng.randint(1, 100)),
                size=f"{self._rng.uniform(50, 150):.1f} MB",
                file_name=artifact,
                download_url=f"{api_base_url}/api/local-downloads/{artifact}",
            )
        else:
            fields.update(size="N/A", download_url="#")

        try:
            updated = await builds.update_fields(placeholder.id, fields)
        except Exception as e:
            logger.exception(f"Failed to record CI result for build {placeholder.id}: {e}")
            return
        if updated is None:
            logger.warning(f"CI build {placeholder.id} was deleted before the pipeline finished")
            return
        logger.info(f"CI build {placeholder.id} pipeline finished with status: {status.value}")

    async def drain(self) -> None:
        """Wait for every in-flight pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending pipelines."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info(f"Cancelled {len(tasks)} pending CI pipelines")
