from .builds import router as builds_router
from .downloads import router as downloads_router
from .dashboard import router as dashboard_router
from .feedback import router as feedback_router
from .ci import router as ci_router
from .settings import router as settings_router

__all__ = [
    "builds_router",
    "downloads_router",
    "dashboard_router",
    "feedback_router",
    "ci_router",
    "settings_router",
]
