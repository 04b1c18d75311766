from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from taskapi.core.config import SettingsDep
from taskapi.core.errors import TaskAPIError
from taskapi.deps import ResourcesDep
from taskapi.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(resources: ResourcesDep, settings: SettingsDep):
    checks = {
        "postgresql": resources.task_repository.ping,
        "mongodb": resources.activity_repository.ping,
        "redis": resources.cache.ping,
    }

    services = {}
    for name, ping in checks.items():
        try:
            await ping()
            services[name] = "healthy"
        except TaskAPIError:
            services[name] = "unhealthy"

    degraded = "unhealthy" in services.values()
    body = HealthResponse(
        status="degraded" if degraded else "healthy",
        version=settings.app_version,
        services=services,
    )
    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE if degraded else status.HTTP_200_OK
        ),
        content=body.model_dump(),
    )
