import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ..backends import Backend, get_app_settings, get_backend
from ..exceptions import ValidationError
from ..schemas import (
    AppSettings,
    FeedbackCreate,
    FeedbackCreatedResponse,
    FeedbackListResponse,
)
from ..services.background import run_logged
from ..services.notifications import notify_new_feedback

router = APIRouter(prefix="/feedback", tags=["feedback"])
logger = logging.getLogger(__name__)


@router.post("", response_model=FeedbackCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    payload: FeedbackCreate,
    background_tasks: BackgroundTasks,
    backend: Backend = Depends(get_backend),
    app_settings: AppSettings = Depends(get_app_settings),
):
    """Leave feedback on a build."""
    if not payload.build_id or not payload.user or not payload.comment:
        raise ValidationError("Missing required fields: buildId, user, comment")

    feedback = await backend.feedbacks.create(payload.build_id, payload.user, payload.comment)
    logger.info(f"Feedback {feedback.id} added to build {feedback.build_id}")

    if app_settings.feedback_enabled:
        build = await backend.builds.get_by_id(feedback.build_id)
        if build is not None:
            background_tasks.add_task(
                run_logged,
                f"feedback notification for {feedback.id}",
                notify_new_feedback,
                build,
                feedback,
            )

    return FeedbackCreatedResponse(feedback=feedback)


@router.get("", response_model=FeedbackListResponse)
async def list_feedback(
    build_id: Optional[str] = Query(None, alias="buildId"),
    backend: Backend = Depends(get_backend),
):
    """List feedback for a build, newest first."""
    if not build_id:
        raise ValidationError("buildId query parameter is required")
    feedbacks = await backend.feedbacks.list_for_build(build_id)
    return FeedbackListResponse(feedbacks=feedbacks)
