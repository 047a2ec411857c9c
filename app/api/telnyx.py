"""Telnyx status and test-call endpoints."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.core.dependencies import get_session_manager, get_telnyx_client
from app.services.call_session.manager import CallSessionManager
from app.services.telephony.client import TelephonyError, TelnyxClient

router = APIRouter()
logger = logging.getLogger(__name__)


class TestCallRequest(BaseModel):
    """Outbound test call request."""

    to: str
    from_: str = Field(alias="from")
    connection_id: str


@router.get("/api/telnyx/status")
async def get_telnyx_status(
    telnyx: TelnyxClient = Depends(get_telnyx_client),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """Provider connectivity and the calls currently in progress."""
    if not telnyx.api_key:
        status = "unconfigured"
    else:
        try:
            # A lookup of a non-existent call tells us whether the key works
            await telnyx.get_call_info("status-probe")
            status = "connected"
        except TelephonyError as e:
            if e.status_code in (404, 422):
                status = "connected"
            elif e.status_code in (401, 403):
                status = "unauthorized"
            else:
                status = "error"

    sessions = session_manager.get_active_sessions()
    return {
        "telnyx": {"status": status, "configured": bool(telnyx.api_key)},
        "active_calls": len(sessions),
        "sessions": [session.to_dict() for session in sessions],
    }


@router.post("/api/telnyx/test-call")
async def create_test_call(
    call_request: TestCallRequest,
    telnyx: TelnyxClient = Depends(get_telnyx_client),
):
    """Place an outbound test call."""
    logger.info(f"[TEST CALL] Creating test call - To: {call_request.to}")
    try:
        result = await telnyx.create_call(
            call_request.to, call_request.from_, call_request.connection_id
        )
    except TelephonyError as e:
        logger.error(f"[TEST CALL] Failed to create test call - Error: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))

    data = result.get("data", {})
    return {
        "success": True,
        "call_control_id": data.get("call_control_id"),
        "call_session_id": data.get("call_session_id"),
    }
