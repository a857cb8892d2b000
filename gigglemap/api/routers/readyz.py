from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from gigglemap.api.deps import get_health_service
from gigglemap.core.startup import is_migration_completed, last_migration_error
from gigglemap.schemas.common import ErrorResponse, OkResponse
from gigglemap.services.health import HealthService

router = APIRouter(prefix="/readyz", tags=["health"])


@router.get(
    "",
    response_model=OkResponse,
    summary="Readiness probe",
    description="Round trip to the store (SELECT 1 on PostGIS); 503 until migrations finish.",
    responses={503: {"model": ErrorResponse, "description": "migrations pending"}},
)
async def readyz(svc: HealthService = Depends(get_health_service)):
    if not is_migration_completed():
        payload = {"error": "Database migrations are still running"}
        detail = last_migration_error()
        if detail:
            payload["detail"] = detail
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)
    return await svc.ok()
