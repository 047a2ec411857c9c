"""Main FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI

from app.core.config import settings
from app.core.dependencies import build_call_session_manager, close_telnyx_client
from app.core.logging import setup_logging
from app.db.database import AsyncSessionLocal, init_db
from app.api import agent, calls, health, notifications, telnyx
from app.api.webhooks import telnyx as telnyx_webhooks
from app.services.call_session.reaper import run_session_reaper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    reaper_task = asyncio.create_task(
        run_session_reaper(
            build_call_session_manager(AsyncSessionLocal),
            settings.session_reap_interval_seconds,
        )
    )
    logger.info("[STARTUP] Phone agent ready")
    yield
    # Shutdown
    reaper_task.cancel()
    with suppress(asyncio.CancelledError):
        await reaper_task
    await close_telnyx_client()
    logger.info("[SHUTDOWN] Phone agent stopped")


app = FastAPI(
    title="AI Phone Agent",
    description="AI receptionist for inbound Telnyx calls",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(telnyx_webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(telnyx.router, tags=["telnyx"])
app.include_router(agent.router, tags=["agent"])
app.include_router(calls.router, tags=["calls"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/")
async def root():
    return {"message": "AI Phone Agent API", "version": "0.1.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
