"""Unit tests for the call session manager."""
import asyncio
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

from app.services.agent.agent import AgentDecision, ConversationEngine
from app.services.agent.constants import (
    GREETING,
    NO_TRANSFER_APOLOGY,
    PROCESSING_APOLOGY,
    SPAM_CLOSING,
    TRANSFER_FAILED_APOLOGY,
)
from app.services.call_session.reaper import run_session_reaper
from app.services.knowledge.in_memory_knowledge import InMemoryKnowledgeProvider
from app.services.knowledge.repository import KnowledgeRepository
from app.services.persistence.calls import CallLogPersistenceService
from app.services.persistence.contacts import ContactPersistenceService
from app.services.persistence.settings import (
    TRANSFER_SIP_ENDPOINT,
    VOICEMAIL_MESSAGE,
    SettingsPersistenceService,
)
from app.services.telephony.client import TelephonyError

CALL_ID = "v3:call-control-1"
CALLER = "+15551234567"


def spoken(mock_telephony):
    """Texts spoken on the call, in order."""
    return [call.args[1] for call in mock_telephony.speak_text.await_args_list]


async def stored_call_log(session_factory, call_control_id=CALL_ID):
    async with session_factory() as db:
        return await CallLogPersistenceService(db).get_call_log_by_control_id(call_control_id)


async def set_setting(session_factory, key, value):
    async with session_factory() as db:
        await SettingsPersistenceService(db).set_setting(key, value)


class TestCallStart:
    """Test answering calls."""

    @pytest.mark.asyncio
    async def test_start_answers_and_greets(self, call_session_manager, mock_telephony):
        """Test a new call is answered, transcribed and greeted."""
        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert session is not None
        assert session.caller_number == CALLER
        mock_telephony.answer_call.assert_awaited_once_with(CALL_ID)
        mock_telephony.start_transcription.assert_awaited_once_with(CALL_ID)
        assert spoken(mock_telephony) == [GREETING]
        assert call_session_manager.get_session(CALL_ID) is session

    @pytest.mark.asyncio
    async def test_duplicate_start_is_idempotent(self, call_session_manager, mock_telephony):
        """Test a redelivered start does not answer the call again."""
        first = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        second = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert first is second
        mock_telephony.answer_call.assert_awaited_once()
        assert len(call_session_manager.get_active_sessions()) == 1

    @pytest.mark.asyncio
    async def test_incoming_call_notified_once(self, call_session_manager, notifier):
        """Test redelivered starts, live or after hangup, do not announce the call again."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.handle_call_end(CALL_ID)
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        incoming = [n for n in notifier.get_notifications() if n.data.get("action") == "incoming_call"]
        assert len(incoming) == 1
        assert incoming[0].data["phone_number"] == CALLER
        assert incoming[0].data["call_control_id"] == CALL_ID

    @pytest.mark.asyncio
    async def test_concurrent_starts_answer_once(self, call_session_manager, mock_telephony):
        """Test simultaneous starts for one call answer it exactly once."""
        await asyncio.gather(
            call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER),
            call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER),
        )

        mock_telephony.answer_call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_answer_failure_hangs_up(self, call_session_manager, mock_telephony):
        """Test a call that cannot be answered leaves no session behind."""
        mock_telephony.answer_call.side_effect = TelephonyError("boom", status_code=500)

        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert session is None
        mock_telephony.hangup_call.assert_awaited_once_with(CALL_ID)
        assert call_session_manager.get_session(CALL_ID) is None

    @pytest.mark.asyncio
    async def test_transcription_failure_keeps_call(self, call_session_manager, mock_telephony):
        """Test the call continues when transcription cannot start."""
        mock_telephony.start_transcription.side_effect = TelephonyError("no stt")

        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert session is not None
        assert session.active is True
        assert spoken(mock_telephony) == [GREETING]

    @pytest.mark.asyncio
    async def test_after_hours_goes_to_voicemail(
        self, call_session_manager, mock_telephony, open_business_hours, session_factory
    ):
        """Test a call outside business hours is sent to voicemail and logged."""
        open_business_hours.is_open.return_value = False
        await set_setting(session_factory, VOICEMAIL_MESSAGE, "Leave a message for Acme.")

        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert session.active is False
        assert spoken(mock_telephony) == ["Our office is currently closed."]
        mock_telephony.send_to_voicemail.assert_awaited_once_with(
            CALL_ID, "Leave a message for Acme."
        )
        assert call_session_manager.get_session(CALL_ID) is None

        call_log = await stored_call_log(session_factory)
        assert call_log.status == "voicemail"

    @pytest.mark.asyncio
    async def test_finished_call_is_not_restarted(self, call_session_manager, mock_telephony):
        """Test a start redelivered after hangup is ignored."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.handle_call_end(CALL_ID)

        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert session is None
        mock_telephony.answer_call.assert_awaited_once()


class TestTranscription:
    """Test transcription buffering and turn handling."""

    @pytest.mark.asyncio
    async def test_partial_fragments_are_buffered(self, call_session_manager, mock_telephony):
        """Test only a final fragment runs the engine, with the whole utterance."""
        engine = Mock()
        engine.process_message = AsyncMock(return_value=AgentDecision(reply="Go on."))
        call_session_manager.engine = engine
        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(CALL_ID, "I would", False)
        await call_session_manager.process_transcription(CALL_ID, "like", False)
        engine.process_message.assert_not_awaited()

        await call_session_manager.process_transcription(CALL_ID, "a callback", True)

        engine.process_message.assert_awaited_once_with(session, "I would like a callback")
        assert spoken(mock_telephony)[-1] == "Go on."
        assert session.transcription_buffer == ""

    @pytest.mark.asyncio
    async def test_unknown_call_is_ignored(self, call_session_manager, mock_telephony):
        """Test transcription for a call with no session does nothing."""
        await call_session_manager.process_transcription("v3:unknown", "hello", True)

        mock_telephony.speak_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_spam_call_is_ended(self, call_session_manager, mock_telephony, session_factory):
        """Test a spam utterance hangs up and records the call as spam."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(
            CALL_ID, "Congratulations, press 1 to claim your cruise", True
        )

        assert spoken(mock_telephony)[-1] == SPAM_CLOSING
        mock_telephony.hangup_call.assert_awaited_once_with(CALL_ID)
        mock_telephony.transfer_call.assert_not_awaited()
        assert call_session_manager.get_session(CALL_ID) is None

        call_log = await stored_call_log(session_factory)
        assert call_log.status == "spam"
        assert call_log.call_id == "session-1"
        assert "CALLER: Congratulations" in call_log.transcript

    @pytest.mark.asyncio
    async def test_transfer_to_configured_destination(
        self, call_session_manager, mock_telephony, session_factory
    ):
        """Test a transfer request reaches the configured endpoint."""
        await set_setting(session_factory, TRANSFER_SIP_ENDPOINT, "sip:sales@example.com")
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(
            CALL_ID, "Can I talk to a real person", True
        )

        mock_telephony.transfer_call.assert_awaited_once_with(CALL_ID, "sip:sales@example.com")
        mock_telephony.send_to_voicemail.assert_not_awaited()
        assert call_session_manager.get_session(CALL_ID) is None

        call_log = await stored_call_log(session_factory)
        assert call_log.status == "transferred"
        assert call_log.transferred_to_human is True

    @pytest.mark.asyncio
    async def test_transfer_without_destination_goes_to_voicemail(
        self, call_session_manager, mock_telephony
    ):
        """Test a transfer with no destination apologizes and takes a message."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(
            CALL_ID, "Can I talk to a real person", True
        )

        mock_telephony.transfer_call.assert_not_awaited()
        assert NO_TRANSFER_APOLOGY in spoken(mock_telephony)
        mock_telephony.send_to_voicemail.assert_awaited_once_with(CALL_ID, None)

    @pytest.mark.asyncio
    async def test_failed_transfer_goes_to_voicemail(
        self, call_session_manager, mock_telephony, session_factory
    ):
        """Test a rejected transfer falls back to voicemail."""
        await set_setting(session_factory, TRANSFER_SIP_ENDPOINT, "+15559990000")
        mock_telephony.transfer_call.side_effect = TelephonyError("busy", status_code=422)
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(
            CALL_ID, "Can I talk to a real person", True
        )

        assert TRANSFER_FAILED_APOLOGY in spoken(mock_telephony)
        mock_telephony.send_to_voicemail.assert_awaited_once()
        assert call_session_manager.get_session(CALL_ID) is None

    @pytest.mark.asyncio
    async def test_engine_error_fails_over(self, call_session_manager, mock_telephony, notifier):
        """Test an engine error apologizes, attempts a transfer and ends the call."""
        engine = Mock()
        engine.process_message = AsyncMock(side_effect=RuntimeError("engine down"))
        call_session_manager.engine = engine
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(CALL_ID, "hello", True)

        assert PROCESSING_APOLOGY in spoken(mock_telephony)
        mock_telephony.send_to_voicemail.assert_awaited_once()
        assert call_session_manager.get_session(CALL_ID) is None

        errors = [n for n in notifier.get_notifications() if n.type == "error"]
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_introduction_with_pricing_is_logged_as_transfer(
        self, call_session_manager, session_factory
    ):
        """Test details from a transfer utterance are stored but the lead is not qualified."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(
            CALL_ID, "Hi, this is John Smith from Acme Corp, I'm interested in pricing", True
        )

        assert call_session_manager.get_session(CALL_ID) is None
        call_log = await stored_call_log(session_factory)
        assert call_log.status == "transferred"
        assert call_log.caller_name == "John Smith"
        assert call_log.caller_company == "Acme Corp"
        assert call_log.reason_for_call == "pricing"
        assert call_log.lead_qualified is False

    @pytest.mark.asyncio
    async def test_qualified_lead_stays_qualified(
        self, call_session_manager, session_factory, notifier, tmp_path
    ):
        """Test a lead qualified on an answered question keeps that status to the end."""
        knowledge_file = tmp_path / "knowledge.yaml"
        knowledge_file.write_text(
            "entries:\n"
            "  - category: plans\n"
            "    question: interested in your support plans\n"
            "    answer: Support plans start at the standard tier.\n"
            "  - category: hours\n"
            "    question: what are your business hours\n"
            "    answer: We are open weekdays from 9 to 5.\n"
        )
        call_session_manager.engine = ConversationEngine(
            KnowledgeRepository(InMemoryKnowledgeProvider(str(knowledge_file))), notifier
        )
        session = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.process_transcription(CALL_ID, "My name is Dana Lee", True)
        assert session.conversation.lead_qualified is False

        await call_session_manager.process_transcription(
            CALL_ID, "I'm interested in your support plans", True
        )
        assert session.conversation.lead_qualified is True
        assert session.active is True

        await call_session_manager.process_transcription(
            CALL_ID, "What are your business hours", True
        )
        assert session.conversation.lead_qualified is True

        await call_session_manager.process_transcription(CALL_ID, "Thanks, that's all", True)

        call_log = await stored_call_log(session_factory)
        assert call_log.lead_qualified is True
        assert call_log.reason_for_call == "your support plans"
        leads = [n for n in notifier.get_notifications() if n.data.get("action") == "lead_qualified"]
        assert len(leads) == 1

    @pytest.mark.asyncio
    async def test_hangup_waits_for_turn_in_progress(
        self, call_session_manager, mock_telephony, session_factory
    ):
        """Test a hangup arriving mid-turn queues behind it and the call is logged once."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        speaking = asyncio.Event()
        release = asyncio.Event()

        async def slow_speak(call_control_id, text):
            speaking.set()
            await release.wait()

        mock_telephony.speak_text.side_effect = slow_speak

        turn = asyncio.create_task(
            call_session_manager.process_transcription(CALL_ID, "My name is Dana Lee", True)
        )
        await speaking.wait()
        hangup = asyncio.create_task(call_session_manager.handle_call_end(CALL_ID))
        await asyncio.sleep(0.05)

        assert not hangup.done()
        assert call_session_manager.get_session(CALL_ID) is not None

        release.set()
        await asyncio.gather(turn, hangup)

        async with session_factory() as db:
            call_logs = await CallLogPersistenceService(db).list_call_logs()
        assert len(call_logs) == 1
        assert call_logs[0].caller_name == "Dana Lee"
        assert "AGENT: Thank you, Dana Lee" in call_logs[0].transcript


class TestCallEnd:
    """Test hangups and session teardown."""

    @pytest.mark.asyncio
    async def test_hangup_persists_once(self, call_session_manager, session_factory, notifier):
        """Test the call is logged exactly once even if hangup is redelivered."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.process_transcription(CALL_ID, "My name is Dana Lee", True)

        await call_session_manager.handle_call_end(CALL_ID)
        await call_session_manager.handle_call_end(CALL_ID)

        async with session_factory() as db:
            call_logs = await CallLogPersistenceService(db).list_call_logs()
            contact = await ContactPersistenceService(db).find_contact_by_phone(CALLER)

        assert len(call_logs) == 1
        assert call_logs[0].status == "answered"
        assert call_logs[0].caller_name == "Dana Lee"
        assert call_logs[0].ended_at is not None
        assert contact is not None
        assert contact.name == "Dana Lee"
        assert call_logs[0].contact_id == contact.id

        ended = [n for n in notifier.get_notifications() if n.data.get("action") == "call_ended"]
        assert len(ended) == 1

    @pytest.mark.asyncio
    async def test_anonymous_caller_gets_no_contact(self, call_session_manager, session_factory):
        """Test no contact is created when the caller never gave a name."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.handle_call_end(CALL_ID)

        async with session_factory() as db:
            contact = await ContactPersistenceService(db).find_contact_by_phone(CALLER)
        call_log = await stored_call_log(session_factory)

        assert contact is None
        assert call_log.contact_id is None

    @pytest.mark.asyncio
    async def test_same_caller_hanging_up_twice_at_once_logs_both(
        self, call_session_manager, session_factory
    ):
        """Test two calls from one named caller ending together both get a call log."""
        for call_control_id in ("v3:a", "v3:b"):
            await call_session_manager.handle_call_start(call_control_id, None, CALLER)
            await call_session_manager.process_transcription(
                call_control_id, "My name is Dana Lee", True
            )

        await asyncio.gather(
            call_session_manager.handle_call_end("v3:a"),
            call_session_manager.handle_call_end("v3:b"),
        )

        async with session_factory() as db:
            call_logs = await CallLogPersistenceService(db).list_call_logs()
        assert sorted(call.call_control_id for call in call_logs) == ["v3:a", "v3:b"]
        assert all(call.caller_name == "Dana Lee" for call in call_logs)

    @pytest.mark.asyncio
    async def test_contact_created_meanwhile_is_linked(
        self, call_session_manager, session_factory, monkeypatch
    ):
        """Test a contact inserted by another call after the lookup is reused, not duplicated."""
        async with session_factory() as db:
            existing = await ContactPersistenceService(db).create_contact(CALLER, name="Dana Lee")

        find_contact = ContactPersistenceService.find_contact_by_phone
        lookups = []

        async def lookup_misses_once(self, phone_number):
            lookups.append(phone_number)
            if len(lookups) == 1:
                return None
            return await find_contact(self, phone_number)

        monkeypatch.setattr(ContactPersistenceService, "find_contact_by_phone", lookup_misses_once)

        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.process_transcription(CALL_ID, "My name is Dana Lee", True)
        await call_session_manager.handle_call_end(CALL_ID)

        call_log = await stored_call_log(session_factory)
        assert call_log is not None
        assert call_log.contact_id == existing.id
        assert lookups == [CALLER, CALLER]

    @pytest.mark.asyncio
    async def test_contact_failure_still_logs_call(
        self, call_session_manager, session_factory, monkeypatch
    ):
        """Test the call is logged without a contact when the contact lookup fails."""
        async def broken_lookup(self, phone_number):
            raise RuntimeError("contacts table unavailable")

        monkeypatch.setattr(ContactPersistenceService, "find_contact_by_phone", broken_lookup)

        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        await call_session_manager.process_transcription(CALL_ID, "My name is Dana Lee", True)
        await call_session_manager.handle_call_end(CALL_ID)

        call_log = await stored_call_log(session_factory)
        assert call_log is not None
        assert call_log.contact_id is None
        assert call_log.caller_name == "Dana Lee"

    @pytest.mark.asyncio
    async def test_hangup_does_not_stop_transcription(self, call_session_manager, mock_telephony):
        """Test a provider hangup does not send commands to the dead call."""
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        await call_session_manager.handle_call_end(CALL_ID)

        mock_telephony.stop_transcription.assert_not_awaited()
        mock_telephony.hangup_call.assert_not_awaited()


class TestInactiveCleanup:
    """Test idle session reaping."""

    @pytest.mark.asyncio
    async def test_idle_session_is_reaped(
        self, call_session_manager, mock_telephony, session_factory
    ):
        """Test only sessions idle past the threshold are terminated and logged."""
        stale = await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)
        fresh = await call_session_manager.handle_call_start("v3:call-2", "session-2", CALLER)
        stale.last_activity_at = datetime.utcnow() - timedelta(seconds=120)

        reaped = await call_session_manager.cleanup_inactive_sessions()

        assert reaped == 1
        mock_telephony.hangup_call.assert_awaited_once_with(CALL_ID)
        assert call_session_manager.get_session(CALL_ID) is None
        assert call_session_manager.get_session("v3:call-2") is fresh
        assert call_session_manager.get_active_sessions() == [fresh]

        call_log = await stored_call_log(session_factory)
        assert call_log is not None
        assert call_log.status == "answered"
        assert call_log.ended_at is not None
        assert await stored_call_log(session_factory, "v3:call-2") is None

    @pytest.mark.asyncio
    async def test_nothing_to_reap(self, call_session_manager):
        await call_session_manager.handle_call_start(CALL_ID, "session-1", CALLER)

        assert await call_session_manager.cleanup_inactive_sessions() == 0


class TestSessionReaper:
    """Test the periodic reaper loop."""

    @pytest.mark.asyncio
    async def test_reaper_survives_failed_pass(self):
        """Test a failing cleanup pass does not stop later passes."""
        manager = Mock()
        manager.cleanup_inactive_sessions = AsyncMock(side_effect=[RuntimeError("db down"), 0, 0])

        task = asyncio.create_task(run_session_reaper(manager, 0.01))
        for _ in range(100):
            if manager.cleanup_inactive_sessions.await_count >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert manager.cleanup_inactive_sessions.await_count >= 2
