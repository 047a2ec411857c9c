"""Telnyx call-control webhook endpoint."""
import json
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import (
    get_notification_manager,
    get_session_manager,
    get_telnyx_client,
)
from app.db.database import get_db
from app.services.call_session.manager import CallSessionManager
from app.services.notifications.manager import NotificationManager
from app.services.persistence.calls import CallLogPersistenceService
from app.services.telephony.client import TelnyxClient
from app.services.telephony.events import TelnyxEvent, parse_event

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "telnyx-signature-ed25519"
TIMESTAMP_HEADER = "telnyx-timestamp"

# Accepted but not acted on
IGNORED_EVENTS = {"call.answered", "call.speak.ended", "call.playback.ended"}


@router.post("/telnyx")
async def handle_telnyx_webhook(
    request: Request,
    telnyx: TelnyxClient = Depends(get_telnyx_client),
    session_manager: CallSessionManager = Depends(get_session_manager),
    notifier: NotificationManager = Depends(get_notification_manager),
    db: AsyncSession = Depends(get_db),
):
    """
    Receive a Telnyx webhook and dispatch it by event type.

    Only call.initiated (incoming), call.transcription and call.hangup drive
    the call flow; recording-saved updates the stored call log.
    """
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")
    timestamp = request.headers.get(TIMESTAMP_HEADER, "")

    if not telnyx.validate_webhook_signature(body, signature, timestamp):
        logger.error(
            f"[WEBHOOK] Invalid signature - Client: {request.client.host if request.client else 'unknown'}"
        )
        return JSONResponse({"error": "Invalid signature"}, status_code=401)

    try:
        event = parse_event(json.loads(body))
    except (json.JSONDecodeError, ValidationError, AttributeError, TypeError) as e:
        logger.error(f"[WEBHOOK] Malformed event - Error: {type(e).__name__}: {str(e)}")
        return JSONResponse({"error": "Malformed event"}, status_code=400)

    logger.info(f"[WEBHOOK] Received {event.event_type} - Call: {event.call_control_id}")

    try:
        if event.event_type == "call.initiated":
            await _handle_call_initiated(event, session_manager)
        elif event.event_type == "call.hangup":
            await _handle_call_hangup(event, session_manager)
        elif event.event_type == "call.transcription":
            await _handle_transcription(event, session_manager)
        elif event.event_type == "call.recording.saved":
            await _handle_recording_saved(event, db)
        elif event.event_type == "call.dtmf.received":
            logger.info(f"[WEBHOOK] DTMF received - Call: {event.call_control_id}, Digit: {event.digit}")
        elif event.event_type in IGNORED_EVENTS:
            logger.debug(f"[WEBHOOK] No action for {event.event_type} - Call: {event.call_control_id}")
        else:
            logger.info(f"[WEBHOOK] Unhandled event type: {event.event_type}")

        return {"received": True}

    except Exception as e:
        logger.error(
            f"[WEBHOOK] Error processing {event.event_type} - Call: {event.call_control_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        notifier.notify_system_error(
            "Telnyx webhook processing failed", {"error": str(e), "event_type": event.event_type}
        )
        return JSONResponse({"error": "Internal server error"}, status_code=500)


async def _handle_call_initiated(event: TelnyxEvent, session_manager: CallSessionManager) -> None:
    if event.direction != "incoming" or not event.call_control_id:
        logger.info(f"[WEBHOOK] Ignoring {event.direction} call - Call: {event.call_control_id}")
        return

    await session_manager.handle_call_start(
        event.call_control_id, event.call_session_id, event.from_ or ""
    )


async def _handle_call_hangup(event: TelnyxEvent, session_manager: CallSessionManager) -> None:
    if event.call_control_id:
        await session_manager.handle_call_end(event.call_control_id)


async def _handle_transcription(event: TelnyxEvent, session_manager: CallSessionManager) -> None:
    if event.call_control_id and event.transcript and event.transcript.strip():
        await session_manager.process_transcription(
            event.call_control_id, event.transcript, event.is_final
        )


async def _handle_recording_saved(event: TelnyxEvent, db: AsyncSession) -> None:
    if not event.call_control_id or not event.recording_url:
        return
    call_log = await CallLogPersistenceService(db).update_recording_url(
        event.call_control_id, event.recording_url
    )
    if call_log is None:
        logger.warning(
            f"[WEBHOOK] Recording saved before call log existed - Call: {event.call_control_id}"
        )
