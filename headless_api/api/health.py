"""Liveness endpoint, served outside the API prefix."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from headless_api.core import check_db_connection

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    api_prefix: str
    bearer_tokens: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Token storage unreachable"},
    },
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Report whether the database behind users and tokens is reachable.

    Bearer authentication cannot work without it, so an unreachable
    database is reported as 503.
    """
    cfg = request.app.state.settings
    db_ok = await check_db_connection()
    if not db_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=cfg.app_version,
        database="connected" if db_ok else "disconnected",
        api_prefix=cfg.api_prefix,
        bearer_tokens=cfg.bearer_tokens_enabled,
    )
