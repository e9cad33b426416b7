"""
RetentionEngine: caps how many builds each (app, platform, channel) group keeps.
"""
import logging
from typing import List

from ..repositories import BuildRepository
from ..schemas import AppSettings, BuildSource, Channel, DeletePolicy, Platform
from .file_store import FileStore

logger = logging.getLogger(__name__)


class RetentionEngine:
    """
    Prunes the oldest builds of a group beyond ``max_builds_per_group``.

    Each pass re-reads the group, so concurrent passes for the same group
    converge on the cap even if the group briefly exceeds it. Under the
    ``CIOnly`` policy manual uploads are neither counted nor pruned.
    """

    def __init__(self, builds: BuildRepository, file_store: FileStore):
        self.builds = builds
        self.file_store = file_store

    async def enforce(
        self,
        app_name: str,
        platform: Platform,
        channel: Channel,
        settings: AppSettings,
    ) -> List[str]:
        """Run one retention pass and return the ids of the pruned builds."""
        group = f"{app_name} ({platform.value}/{channel.value})"
        if not settings.enable_auto_clean:
            logger.info(f"Auto-clean disabled, skipping retention for {group}")
            return []

        source = (
            BuildSource.CI_PIPELINE
            if settings.delete_policy == DeletePolicy.CI_ONLY
            else None
        )
        candidates = await self.builds.list_group(app_name, platform, channel, source=source)
        limit = settings.max_builds_per_group
        logger.info(
            f"Checking retention for {group}: {len(candidates)} candidate builds, "
            f"limit {limit}, policy {settings.delete_policy.value}"
        )
        surplus = candidates[limit:]
        if not surplus:
            return []

        logger.info(f"Pruning {len(surplus)} surplus builds from {group}")
        pruned = []
        for build in surplus:
            if build.file_name:
                try:
                    if await self.builds.is_file_shared(build):
                        logger.info(
                            f"Keeping file {build.file_name} of build {build.id}, "
                            f"still referenced by another build"
                        )
                    else:
                        await self.file_store.delete(build.file_name)
                except Exception as e:
                    # Record deletion proceeds regardless
                    logger.error(f"Failed to delete file {build.file_name} of build {build.id}: {e}")
            try:
                if await self.builds.delete(build.id):
                    pruned.append(build.id)
                    logger.info(f"Pruned build {build.id} ({build.version_name}) from {group}")
            except Exception as e:
                logger.exception(f"Failed to prune build {build.id} from {group}: {e}")
        return pruned
