"""Call log API endpoints."""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.services.persistence.calls import CallLogPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class CallLogResponse(BaseModel):
    """Call log response model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: Optional[int] = None
    call_id: Optional[str] = None
    call_control_id: str
    phone_number: str
    direction: str
    status: str
    duration: int
    transcript: Optional[str] = None
    summary: Optional[str] = None
    lead_qualified: bool
    caller_name: Optional[str] = None
    caller_company: Optional[str] = None
    reason_for_call: Optional[str] = None
    transferred_to_human: bool
    recording_url: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None


@router.get("/api/calls", response_model=List[CallLogResponse])
async def list_calls(
    request: Request,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """Get call logs, newest first."""
    logger.info(
        f"[CALLS] Request received - limit: {limit}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    call_logs = await CallLogPersistenceService(db).list_call_logs(limit=limit)
    logger.info(f"[CALLS] Found {len(call_logs)} call logs")
    return call_logs


@router.get("/api/calls/{call_log_id}", response_model=CallLogResponse)
async def get_call(call_log_id: int, db: AsyncSession = Depends(get_db)):
    """Get one call log."""
    call_log = await CallLogPersistenceService(db).get_call_log(call_log_id)
    if call_log is None:
        raise HTTPException(status_code=404, detail="Call not found")
    return call_log
