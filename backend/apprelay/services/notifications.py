"""
Notification hooks.

Delivery (email, push) is handled outside this service; these functions
log what would be sent so the trigger points stay observable.
"""
import logging

from ..schemas import BuildResponse, FeedbackResponse

logger = logging.getLogger(__name__)


async def notify_new_build(build: BuildResponse) -> None:
    logger.info(
        f"New build notification: {build.app_name} v{build.version_name} "
        f"({build.platform.value}/{build.channel.value}) is available"
    )


async def notify_new_feedback(build: BuildResponse, feedback: FeedbackResponse) -> None:
    logger.info(
        f"New feedback notification: {feedback.user} commented on "
        f"{build.app_name} v{build.version_name}"
    )
