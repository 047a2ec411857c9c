"""Call session models."""
from datetime import datetime
from enum import Enum
from typing import Optional
from app.services.agent.state import ConversationContext


class CallStatus(str, Enum):
    """Call log status values."""

    ANSWERED = "answered"
    MISSED = "missed"
    TRANSFERRED = "transferred"
    SPAM = "spam"
    VOICEMAIL = "voicemail"
    IN_PROGRESS = "in-progress"

    def __str__(self) -> str:
        return self.value


class CallSession:
    """An in-flight call, owned by the session manager while active."""

    def __init__(
        self,
        call_control_id: str,
        call_session_id: Optional[str],
        caller_number: str,
        conversation: Optional[ConversationContext] = None,
    ):
        self.call_control_id = call_control_id
        self.call_session_id = call_session_id
        self.caller_number = caller_number
        self.started_at = datetime.utcnow()
        self.last_activity_at = self.started_at
        self.transcription_buffer = ""
        self.active = True
        self.conversation = conversation or ConversationContext(
            call_id=call_session_id or call_control_id,
            phone_number=caller_number,
        )

    def touch(self) -> None:
        """Record inbound activity."""
        self.last_activity_at = datetime.utcnow()

    def append_fragment(self, fragment: str) -> None:
        self.transcription_buffer += fragment + " "

    def take_utterance(self) -> str:
        """Return the buffered utterance and clear the buffer."""
        utterance = self.transcription_buffer.strip()
        self.transcription_buffer = ""
        return utterance

    def idle_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or datetime.utcnow()) - self.last_activity_at).total_seconds()

    def duration_seconds(self, now: Optional[datetime] = None) -> int:
        return int(((now or datetime.utcnow()) - self.started_at).total_seconds())

    def resolve_status(self) -> CallStatus:
        """Final status, in precedence order spam > transferred > voicemail > answered."""
        context = self.conversation
        if context.spam_detected:
            return CallStatus.SPAM
        if context.transfer_requested:
            return CallStatus.TRANSFERRED
        if context.voicemail_requested:
            return CallStatus.VOICEMAIL
        return CallStatus.ANSWERED

    def outcome(self) -> str:
        """Short outcome label for notifications."""
        context = self.conversation
        if context.spam_detected:
            return "spam blocked"
        if context.transfer_requested:
            return "transferred"
        if context.lead_qualified:
            return "lead qualified"
        if context.voicemail_requested:
            return "voicemail"
        return "completed"

    def to_dict(self) -> dict:
        """Read-only snapshot for status display."""
        now = datetime.utcnow()
        return {
            "call_control_id": self.call_control_id,
            "call_session_id": self.call_session_id,
            "phone_number": self.caller_number,
            "started_at": self.started_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
            "duration": self.duration_seconds(now),
            "caller_name": self.conversation.caller_name,
            "lead_qualified": self.conversation.lead_qualified,
        }
