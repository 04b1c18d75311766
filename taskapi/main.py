from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError

from taskapi.core.config import Settings, get_settings
from taskapi.core.errors import CacheError, NotFoundError, StoreError
from taskapi.core.logging import setup_logging
from taskapi.middleware import RequestLoggingMiddleware
from taskapi.resources import open_resources
from taskapi.routers import activities, health, tasks
from taskapi.schemas import error_response

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    app.state.resources = await open_resources(settings)
    logger.info("server starting", environment=settings.environment)
    yield
    logger.info("shutting down server")
    await app.state.resources.close()


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        return error_response(status.HTTP_400_BAD_REQUEST, "validation_error", message)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return error_response(status.HTTP_404_NOT_FOUND, "not_found", "Task not found")

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("store failure", error=str(exc))
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "The request could not be completed",
        )

    @app.exception_handler(CacheError)
    async def cache_error_handler(request: Request, exc: CacheError):
        logger.error("cache failure", error=str(exc))
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "cache_unavailable",
            "The cache is not reachable",
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Task Management API",
        description="Task management API with PostgreSQL, MongoDB activity log and Redis cache",
        swagger_ui_parameters={"displayRequestDuration": True},
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router)
    app.include_router(tasks.router, prefix="/api")
    app.include_router(activities.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "message": "Welcome to Task Management API",
            "docs": "/docs",
            "version": settings.app_version,
        }

    return app


app = create_app()
