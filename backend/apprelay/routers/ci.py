import logging

from fastapi import APIRouter, Depends, status

from ..backends import Backend, get_app_settings, get_backend, get_ci_simulator
from ..exceptions import FeatureDisabledError, NotFoundError, ValidationError
from ..schemas import (
    AppSettings,
    CITriggerRequest,
    CITriggerResponse,
    RepositoryCreate,
    RepositoryDeleteResponse,
    RepositoryListResponse,
    RepositoryMutationResponse,
    RepositoryUpdate,
)
from ..services.ci_pipeline import CIPipelineSimulator

router = APIRouter(prefix="/ci", tags=["ci"])
logger = logging.getLogger(__name__)


def require_ci_enabled(app_settings: AppSettings = Depends(get_app_settings)) -> AppSettings:
    if not app_settings.ci_integration_enabled:
        raise FeatureDisabledError("CI integration is disabled in settings.")
    return app_settings


@router.post("/trigger", response_model=CITriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_ci_build(
    payload: CITriggerRequest,
    backend: Backend = Depends(get_backend),
    app_settings: AppSettings = Depends(require_ci_enabled),
    simulator: CIPipelineSimulator = Depends(get_ci_simulator),
):
    """Create a placeholder build and start a simulated pipeline for it."""
    build = await simulator.trigger(backend.builds, payload, app_settings)
    return CITriggerResponse(
        message=(
            f"CI Build triggered for {payload.project_name} on branch "
            f"{payload.branch}. Build ID: {build.id}"
        ),
        new_build=build,
    )


# ============== Monitored Repositories ==============

@router.get("/repositories", response_model=RepositoryListResponse)
async def list_repositories(
    backend: Backend = Depends(get_backend),
    app_settings: AppSettings = Depends(get_app_settings),
):
    """List monitored repositories by URL; empty while CI is disabled."""
    if not app_settings.ci_integration_enabled:
        return RepositoryListResponse(repositories=[])
    repositories = await backend.repositories.list()
    return RepositoryListResponse(repositories=repositories)


@router.post(
    "/repositories",
    response_model=RepositoryMutationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_ci_enabled)],
)
async def create_repository(
    payload: RepositoryCreate,
    backend: Backend = Depends(get_backend),
):
    """Start monitoring a repository."""
    if not payload.repo_url or not payload.default_branch:
        raise ValidationError("Missing required fields for monitored repository.")
    repository = await backend.repositories.create(payload)
    logger.info(f"Monitoring repository {repository.repo_url}")
    return RepositoryMutationResponse(
        repository=repository, message="Repository added successfully."
    )


@router.put(
    "/repositories/{repository_id}",
    response_model=RepositoryMutationResponse,
    dependencies=[Depends(require_ci_enabled)],
)
async def update_repository(
    repository_id: str,
    payload: RepositoryUpdate,
    backend: Backend = Depends(get_backend),
):
    """Partially update a monitored repository."""
    if not payload.model_dump(exclude_unset=True, exclude_none=True):
        raise ValidationError("No update data provided.")
    repository = await backend.repositories.update(repository_id, payload)
    if repository is None:
        raise NotFoundError("Repository not found for update.")
    return RepositoryMutationResponse(
        repository=repository, message="Repository updated successfully."
    )


@router.delete(
    "/repositories/{repository_id}",
    response_model=RepositoryDeleteResponse,
    dependencies=[Depends(require_ci_enabled)],
)
async def delete_repository(
    repository_id: str,
    backend: Backend = Depends(get_backend),
):
    """Stop monitoring a repository."""
    if not await backend.repositories.delete(repository_id):
        raise NotFoundError("Repository not found for deletion.")
    logger.info(f"Removed monitored repository {repository_id}")
    return RepositoryDeleteResponse(success=True, message="Repository deleted successfully.")
