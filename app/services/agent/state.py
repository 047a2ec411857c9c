"""Conversation state management."""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Speaker(str, Enum):
    """Who said a turn."""

    CALLER = "caller"
    AGENT = "agent"

    def __str__(self) -> str:
        return self.value


class ConversationTurn(BaseModel):
    """One line of the conversation."""

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ConversationContext(BaseModel):
    """
    Per-call conversation state.

    Extracted fields are set at most once: the first successful extraction
    sticks. The lead/spam/transfer/voicemail flags only ever go from False
    to True. ``history`` is append-only.
    """

    call_id: str
    phone_number: str = ""
    caller_name: Optional[str] = None
    caller_company: Optional[str] = None
    caller_phone: Optional[str] = None  # number spoken by the caller
    reason_for_call: Optional[str] = None
    lead_qualified: bool = False
    spam_detected: bool = False
    transfer_requested: bool = False
    voicemail_requested: bool = False
    history: List[ConversationTurn] = []

    def add_turn(self, speaker: Speaker, text: str) -> None:
        """Append a turn to the history."""
        self.history.append(ConversationTurn(speaker=speaker, text=text))

    def set_caller_name(self, value: str) -> bool:
        if self.caller_name or not value:
            return False
        self.caller_name = value
        return True

    def set_caller_company(self, value: str) -> bool:
        if self.caller_company or not value:
            return False
        self.caller_company = value
        return True

    def set_caller_phone(self, value: str) -> bool:
        if self.caller_phone or not value:
            return False
        self.caller_phone = value
        return True

    def set_reason_for_call(self, value: str) -> bool:
        if self.reason_for_call or not value:
            return False
        self.reason_for_call = value
        return True

    def mark_spam(self) -> None:
        self.spam_detected = True

    def mark_transfer_requested(self) -> None:
        self.transfer_requested = True

    def mark_voicemail(self) -> None:
        self.voicemail_requested = True

    def mark_lead_qualified(self) -> None:
        self.lead_qualified = True

    @property
    def has_phone(self) -> bool:
        """The caller's own number counts as a phone signal."""
        return bool(self.caller_phone or self.phone_number)

    def get_transcript_text(self) -> str:
        """Get full transcript as text."""
        return "\n\n".join(
            f"{turn.speaker.value.upper()}: {turn.text}" for turn in self.history
        )

    def get_summary(self) -> str:
        """One-line summary of what was learned on the call."""
        parts = []
        if self.caller_name:
            parts.append(f"Caller: {self.caller_name}")
        if self.caller_company:
            parts.append(f"Company: {self.caller_company}")
        if self.reason_for_call:
            parts.append(f"Reason: {self.reason_for_call}")

        if self.lead_qualified:
            parts.append("Status: Qualified lead")
        elif self.spam_detected:
            parts.append("Status: Spam call blocked")
        elif self.transfer_requested:
            parts.append("Status: Transferred to human")
        elif self.voicemail_requested:
            parts.append("Status: Sent to voicemail")

        return " | ".join(parts)
