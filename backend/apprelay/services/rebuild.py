"""
Rebuild derivation: a new build record from an existing one, no new binary.
"""
import logging
import re
from typing import Any, Dict, Optional

from ..repositories import BuildRepository
from ..schemas import BuildResponse, BuildSource, BuildStatus

logger = logging.getLogger(__name__)

VERSION_NAME_SUFFIX = "rbld"
VERSION_CODE_SUFFIX = "RBLD"


def get_next_version(current: Optional[str], suffix: str) -> str:
    """
    Append ``-<suffix>-1`` or bump an existing trailing ``-<suffix>-<n>``.

    >>> get_next_version("1.2.0", "rbld")
    '1.2.0-rbld-1'
    >>> get_next_version("1.2.0-rbld-1", "rbld")
    '1.2.0-rbld-2'
    """
    if not current:
        return f"0-{suffix}-1"
    pattern = re.compile(rf"-{re.escape(suffix)}-(\d+)$")
    match = pattern.search(current)
    if match:
        return f"{current[:match.start()]}-{suffix}-{int(match.group(1)) + 1}"
    return f"{current}-{suffix}-1"


def derive_rebuild(original: BuildResponse, triggered_by: str) -> Dict[str, Any]:
    """Build data for the rebuilt record; the artifact is inherited unchanged."""
    data = original.model_dump(exclude={"id", "qr_code_url", "upload_date"})
    data.update(
        version_name=get_next_version(original.version_name, VERSION_NAME_SUFFIX),
        version_code=get_next_version(original.version_code, VERSION_CODE_SUFFIX),
        changelog=(
            f"Forced rebuild of v{original.version_name}. Triggered by {triggered_by}.\n"
            f"---\nOriginal Changelog:\n{original.changelog}"
        ),
        previous_changelog=original.changelog,
        build_status=BuildStatus.SUCCESS,
        download_count=0,
        source=BuildSource.MANUAL_UPLOAD,
        triggered_by=triggered_by,
        ci_build_id=None,
        pipeline_status=None,
        ci_logs_url=None,
    )
    return data


async def rebuild(
    builds: BuildRepository,
    build_id: str,
    triggered_by: str,
    api_base_url: str,
) -> BuildResponse:
    original = await builds.require(build_id)
    new_build = await builds.create(derive_rebuild(original, triggered_by), api_base_url)
    logger.info(
        f"Rebuilt {original.id} as {new_build.id} "
        f"({new_build.version_name}) for {triggered_by}"
    )
    return new_build
