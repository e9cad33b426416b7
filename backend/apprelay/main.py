import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .backends import create_backend
from .config import Settings, get_settings
from .exceptions import AppRelayError
from .routers import (
    builds_router,
    downloads_router,
    dashboard_router,
    feedback_router,
    ci_router,
    settings_router,
)
from .services.ci_pipeline import CIPipelineSimulator

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        parts.append(f"{field}: {error.get('msg')}")
    return "Invalid request: " + "; ".join(parts)


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or get_settings()
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        logger.info("Starting AppRelay...")
        config.data_path.mkdir(parents=True, exist_ok=True)
        config.upload_tmp_path.mkdir(parents=True, exist_ok=True)

        app.state.backend = await create_backend(config)
        app.state.ci_simulator = CIPipelineSimulator(
            delay_seconds=config.ci_simulation_delay_seconds,
            success_rate=config.ci_success_rate,
        )
        logger.info(f"Backend initialized ({app.state.backend.name})")

        yield

        # Shutdown
        logger.info("Shutting down...")
        await app.state.ci_simulator.stop()
        await app.state.backend.close()

    app = FastAPI(
        title="AppRelay",
        description="Mobile build distribution backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(builds_router, prefix="/api")
    app.include_router(downloads_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(feedback_router, prefix="/api")
    app.include_router(ci_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "AppRelay",
            "version": "1.0.0"
        }

    @app.get("/api/health")
    async def health_check():
        """API health check."""
        return {"status": "healthy"}

    @app.exception_handler(AppRelayError)
    async def app_error_handler(request: Request, exc: AppRelayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.public_message, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "validation_error"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "internal_error"},
        )

    return app


app = create_app()
