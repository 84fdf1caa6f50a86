from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

health_router = APIRouter(tags=["health"])


@health_router.get("/healthz", response_class=PlainTextResponse)
async def healthz():
    # Uptime probe only; does not touch the store
    return "OK"
