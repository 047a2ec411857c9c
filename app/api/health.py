"""Health check endpoint."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"[HEALTH] Database check failed - Error: {type(e).__name__}: {str(e)}")
        return JSONResponse(
            {
                "status": "unhealthy",
                "timestamp": datetime.utcnow().isoformat(),
                "checks": {"database": "error"},
            },
            status_code=503,
        )

    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": "connected"},
    }
