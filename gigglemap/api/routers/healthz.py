from fastapi import APIRouter

from gigglemap.schemas.common import OkResponse

router = APIRouter(prefix="/healthz", tags=["health"])


@router.get(
    "",
    response_model=OkResponse,
    summary="Liveness probe",
    description="Always 200 while the process is serving; never touches the store.",
)
async def healthz():
    return {"ok": True}
