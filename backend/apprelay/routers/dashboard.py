from fastapi import APIRouter, Depends

from ..backends import Backend, get_backend
from ..schemas import DashboardStatsResponse
from ..services.dashboard import compute_dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(backend: Backend = Depends(get_backend)):
    """Aggregate build, download and distribution counts."""
    builds = await backend.builds.list()
    return DashboardStatsResponse(stats=compute_dashboard_stats(builds))
