from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from callrelay.schemas import HealthStatus

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
def alive() -> str:
    return "Webhook is alive ✅"


@router.get("/health", response_model=HealthStatus)
def health() -> HealthStatus:
    return HealthStatus()
