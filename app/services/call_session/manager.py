"""Call session manager."""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.services.agent.agent import ConversationEngine
from app.services.agent.constants import (
    GREETING,
    NO_TRANSFER_APOLOGY,
    PROCESSING_APOLOGY,
    TRANSFER_FAILED_APOLOGY,
)
from app.services.agent.state import Speaker
from app.services.business.hours import BusinessHoursService
from app.services.call_session.locks import KeyedLock
from app.services.call_session.models import CallSession
from app.services.notifications.manager import NotificationManager
from app.services.persistence.calls import CallLogPersistenceService
from app.services.persistence.contacts import ContactPersistenceService
from app.services.persistence.settings import (
    TRANSFER_SIP_ENDPOINT,
    VOICEMAIL_MESSAGE,
    SystemSettings,
)
from app.services.telephony.client import TelephonyError, TelnyxClient

logger = logging.getLogger(__name__)

# Module-level session storage (persists across requests).
# Single process only: sessions do not survive a restart.
_sessions: Dict[str, CallSession] = {}
_call_locks = KeyedLock()

# Recently finished calls, so a redelivered call.initiated is not re-answered
_finished_calls: "OrderedDict[str, None]" = OrderedDict()
FINISHED_CALLS_MEMORY = 1000


def _remember_finished(call_control_id: str) -> None:
    _finished_calls[call_control_id] = None
    _finished_calls.move_to_end(call_control_id)
    while len(_finished_calls) > FINISHED_CALLS_MEMORY:
        _finished_calls.popitem(last=False)


def clear_sessions() -> None:
    """Forget all in-memory call state."""
    _sessions.clear()
    _call_locks.clear()
    _finished_calls.clear()


class CallSessionManager:
    """
    Owns in-flight calls and drives them against the telephony provider.

    Every operation on a call runs under that call's lock, so events for one
    call are handled one at a time in arrival order while different calls
    proceed independently.
    """

    def __init__(
        self,
        telephony: TelnyxClient,
        engine: ConversationEngine,
        business_hours: BusinessHoursService,
        system_settings: SystemSettings,
        session_factory: async_sessionmaker,
        notifier: NotificationManager,
        idle_timeout_seconds: Optional[int] = None,
    ):
        self.telephony = telephony
        self.engine = engine
        self.business_hours = business_hours
        self.system_settings = system_settings
        self.session_factory = session_factory
        self.notifier = notifier
        self.idle_timeout_seconds = (
            idle_timeout_seconds
            if idle_timeout_seconds is not None
            else settings.session_idle_timeout_seconds
        )

    def get_session(self, call_control_id: str) -> Optional[CallSession]:
        """Get an existing call session."""
        return _sessions.get(call_control_id)

    def get_active_sessions(self) -> List[CallSession]:
        """Snapshot of the calls currently in progress."""
        return [session for session in list(_sessions.values()) if session.active]

    async def handle_call_start(
        self, call_control_id: str, call_session_id: Optional[str], caller_number: str
    ) -> Optional[CallSession]:
        """
        Answer an incoming call and open the conversation.

        Idempotent: a second start for a known call returns the existing
        session without touching the provider or notifying again.

        Returns:
            The session, or None if the call could not be answered.
        """
        async with _call_locks.hold(call_control_id):
            existing = _sessions.get(call_control_id)
            if existing:
                logger.info(
                    f"[SESSION MANAGER] Duplicate call start ignored - Call: {call_control_id}"
                )
                return existing

            if call_control_id in _finished_calls:
                logger.info(
                    f"[SESSION MANAGER] Call already finished, ignoring start - Call: {call_control_id}"
                )
                return None

            self._notify(self.notifier.notify_incoming_call, caller_number, call_control_id)

            try:
                await self.telephony.answer_call(call_control_id)
            except Exception as e:
                logger.error(
                    f"[SESSION MANAGER] Failed to answer call - Call: {call_control_id}, "
                    f"Error: {type(e).__name__}: {str(e)}"
                )
                await self._safe_hangup(call_control_id)
                return None

            session = CallSession(call_control_id, call_session_id, caller_number)
            _sessions[call_control_id] = session
            logger.info(
                f"[SESSION MANAGER] Session created - Call: {call_control_id}, "
                f"From: {caller_number}, Active sessions: {len(_sessions)}"
            )

            try:
                await self.telephony.start_transcription(call_control_id)
            except TelephonyError as e:
                logger.error(
                    f"[SESSION MANAGER] Failed to start transcription - Call: {call_control_id}, "
                    f"Error: {str(e)}"
                )

            try:
                if not await self.business_hours.is_open():
                    message = await self.business_hours.get_after_hours_message()
                    logger.info(f"[SESSION MANAGER] After hours, routing to voicemail - Call: {call_control_id}")
                    await self.telephony.speak_text(call_control_id, message)
                    session.conversation.add_turn(Speaker.AGENT, message)
                    await self._send_to_voicemail(session)
                    await self._end_session(session, reason="after_hours")
                    return session

                await self.telephony.speak_text(call_control_id, GREETING)
                session.conversation.add_turn(Speaker.AGENT, GREETING)
            except Exception as e:
                logger.error(
                    f"[SESSION MANAGER] Error opening conversation - Call: {call_control_id}, "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
                await self._fail_over(session)

            return session

    async def process_transcription(
        self, call_control_id: str, fragment: str, is_final: bool
    ) -> None:
        """
        Buffer a transcription fragment; on a final fragment, run one engine turn.

        Partial fragments never reach the engine. Events for calls that are
        not (or no longer) active are ignored.
        """
        async with _call_locks.hold(call_control_id):
            session = _sessions.get(call_control_id)
            if session is None or not session.active:
                logger.debug(
                    f"[SESSION MANAGER] Transcription for unknown call ignored - Call: {call_control_id}"
                )
                return

            session.touch()
            session.append_fragment(fragment)
            if not is_final:
                return

            utterance = session.take_utterance()
            if not utterance:
                return

            try:
                decision = await self.engine.process_message(session, utterance)

                if decision.should_transfer:
                    await self.telephony.speak_text(call_control_id, decision.reply)
                    await self._transfer_to_human(session)
                    await self._end_session(session, reason="transfer")
                elif decision.call_complete:
                    await self.telephony.speak_text(call_control_id, decision.reply)
                    await self.telephony.hangup_call(call_control_id)
                    await self._end_session(
                        session, reason="spam" if decision.spam_detected else "completed"
                    )
                else:
                    await self.telephony.speak_text(call_control_id, decision.reply)
            except Exception as e:
                logger.error(
                    f"[SESSION MANAGER] Error processing transcription - Call: {call_control_id}, "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
                await self._fail_over(session)

    async def handle_call_end(self, call_control_id: str) -> None:
        """Provider reported hangup. No-op if the session is already gone."""
        async with _call_locks.hold(call_control_id):
            session = _sessions.get(call_control_id)
            if session is None:
                logger.debug(
                    f"[SESSION MANAGER] Hangup for unknown call ignored - Call: {call_control_id}"
                )
                return
            await self._end_session(session, reason="hangup")

    async def cleanup_inactive_sessions(self) -> int:
        """
        Terminate sessions idle longer than the threshold.

        Returns:
            Number of sessions reaped
        """
        now = datetime.utcnow()
        stale = [
            call_control_id
            for call_control_id, session in list(_sessions.items())
            if session.idle_seconds(now) > self.idle_timeout_seconds
        ]

        reaped = 0
        for call_control_id in stale:
            async with _call_locks.hold(call_control_id):
                session = _sessions.get(call_control_id)
                # A late event may have refreshed or ended the call while we waited
                if session is None or session.idle_seconds() <= self.idle_timeout_seconds:
                    continue

                logger.warning(
                    f"[SESSION MANAGER] Cleaning up inactive session - Call: {call_control_id}, "
                    f"Idle: {int(session.idle_seconds())}s"
                )
                await self._safe_hangup(call_control_id)
                await self._end_session(session, reason="idle_timeout")
                reaped += 1

        return reaped

    async def _transfer_to_human(self, session: CallSession) -> bool:
        """
        Transfer to the configured destination, or fall back to voicemail.

        Returns:
            True if the transfer command was accepted
        """
        call_control_id = session.call_control_id
        destination = await self.system_settings.get_setting(TRANSFER_SIP_ENDPOINT)

        if not destination:
            logger.error(
                f"[SESSION MANAGER] No transfer destination configured - Call: {call_control_id}"
            )
            await self.telephony.speak_text(call_control_id, NO_TRANSFER_APOLOGY)
            await self._send_to_voicemail(session)
            return False

        try:
            await self.telephony.transfer_call(call_control_id, destination)
            logger.info(
                f"[SESSION MANAGER] Call transferred - Call: {call_control_id}, To: {destination}"
            )
            return True
        except TelephonyError as e:
            logger.error(
                f"[SESSION MANAGER] Transfer failed - Call: {call_control_id}, Error: {str(e)}"
            )
            await self.telephony.speak_text(call_control_id, TRANSFER_FAILED_APOLOGY)
            await self._send_to_voicemail(session)
            return False

    async def _send_to_voicemail(self, session: CallSession) -> None:
        session.conversation.mark_voicemail()
        message = await self.system_settings.get_setting(VOICEMAIL_MESSAGE)
        await self.telephony.send_to_voicemail(session.call_control_id, message)

    async def _fail_over(self, session: CallSession) -> None:
        """Apologize, try to reach a human, and always finish the session."""
        call_control_id = session.call_control_id
        session.conversation.mark_transfer_requested()
        self._notify(
            self.notifier.notify_system_error,
            "Call processing failed, transferring caller",
            {"call_control_id": call_control_id},
        )

        try:
            await self.telephony.speak_text(call_control_id, PROCESSING_APOLOGY)
            session.conversation.add_turn(Speaker.AGENT, PROCESSING_APOLOGY)
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Failed to speak apology - Call: {call_control_id}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )

        try:
            await self._transfer_to_human(session)
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Fallback transfer failed, hanging up - Call: {call_control_id}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            await self._safe_hangup(call_control_id)

        await self._end_session(session, reason="error")

    async def _end_session(self, session: CallSession, reason: str) -> None:
        """Persist the call once and drop it from the registry. Never raises."""
        if not session.active:
            return
        session.active = False
        call_control_id = session.call_control_id
        ended_at = datetime.utcnow()

        try:
            if reason != "hangup":
                try:
                    await self.telephony.stop_transcription(call_control_id)
                except Exception as e:
                    logger.debug(
                        f"[SESSION MANAGER] Stop transcription failed - Call: {call_control_id}, "
                        f"Error: {str(e)}"
                    )

            await self._persist(session, ended_at)
            self._notify(
                self.notifier.notify_call_ended,
                session.caller_number,
                session.duration_seconds(ended_at),
                session.outcome(),
            )
        finally:
            _sessions.pop(call_control_id, None)
            _remember_finished(call_control_id)
            logger.info(
                f"[SESSION MANAGER] Session ended - Call: {call_control_id}, Reason: {reason}, "
                f"Active sessions: {len(_sessions)}"
            )

    async def _persist(self, session: CallSession, ended_at: datetime) -> None:
        """Write the call log (and a contact for named callers). Errors are logged only."""
        context = session.conversation
        status = session.resolve_status()

        try:
            async with self.session_factory() as db:
                contact_id = await self._resolve_contact_id(db, session)

                call_log = await CallLogPersistenceService(db).create_call_log(
                    call_control_id=session.call_control_id,
                    call_id=session.call_session_id,
                    contact_id=contact_id,
                    phone_number=session.caller_number,
                    direction="inbound",
                    status=status.value,
                    duration=session.duration_seconds(ended_at),
                    transcript=context.get_transcript_text(),
                    summary=context.get_summary(),
                    lead_qualified=context.lead_qualified,
                    caller_name=context.caller_name,
                    caller_company=context.caller_company,
                    reason_for_call=context.reason_for_call,
                    transferred_to_human=context.transfer_requested,
                    started_at=session.started_at,
                    ended_at=ended_at,
                )
            logger.info(
                f"[SESSION MANAGER] Call log saved - Call: {session.call_control_id}, "
                f"Log ID: {call_log.id}, Status: {status.value}"
            )
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Failed to persist call - Call: {session.call_control_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

    async def _resolve_contact_id(self, db: AsyncSession, session: CallSession) -> Optional[int]:
        """
        Find or create the caller's contact.

        Never raises; on failure the call is logged without a contact.
        """
        context = session.conversation
        if not session.caller_number:
            return None

        contacts = ContactPersistenceService(db)
        try:
            contact = await contacts.find_contact_by_phone(session.caller_number)
            if contact is None and context.caller_name:
                try:
                    contact = await contacts.create_contact(
                        phone_number=session.caller_number,
                        name=context.caller_name,
                        company=context.caller_company,
                        is_spam=context.spam_detected,
                    )
                except IntegrityError:
                    # Another call from the same number created it first
                    await db.rollback()
                    contact = await contacts.find_contact_by_phone(session.caller_number)
            return contact.id if contact else None
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Failed to link contact - Call: {session.call_control_id}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            await db.rollback()
            return None

    async def _safe_hangup(self, call_control_id: str) -> None:
        try:
            await self.telephony.hangup_call(call_control_id)
        except Exception as e:
            logger.warning(
                f"[SESSION MANAGER] Best-effort hangup failed - Call: {call_control_id}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )

    def _notify(self, notify: Callable, *args) -> None:
        try:
            notify(*args)
        except Exception as e:
            logger.warning(f"[SESSION MANAGER] Notification failed: {type(e).__name__}: {str(e)}")
