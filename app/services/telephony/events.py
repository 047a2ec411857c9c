"""Telnyx webhook event models."""
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class TelnyxEvent(BaseModel):
    """
    A call-control webhook event, flattened.

    Telnyx nests events as ``{"data": {"event_type": ..., "payload": {...}}}``;
    flat bodies with the payload fields at the top level are accepted too.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_type: str
    call_control_id: Optional[str] = None
    call_leg_id: Optional[str] = None
    call_session_id: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    direction: Optional[str] = None
    state: Optional[str] = None

    # call.transcription
    transcript: Optional[str] = None
    confidence: Optional[float] = None
    is_final: bool = False

    # call.recording.saved
    recording_url: Optional[str] = None

    # call.dtmf.received
    digit: Optional[str] = None


def parse_event(body: Dict[str, Any]) -> TelnyxEvent:
    """Build a TelnyxEvent from a decoded webhook body."""
    data = body.get("data", body)
    fields: Dict[str, Any] = dict(data.get("payload") or {})
    fields.setdefault("event_type", data.get("event_type"))
    for key, value in data.items():
        if key not in ("payload", "record_type", "id"):
            fields.setdefault(key, value)

    transcription = fields.pop("transcription_data", None)
    if isinstance(transcription, dict):
        fields.setdefault("transcript", transcription.get("transcript"))
        fields.setdefault("confidence", transcription.get("confidence"))
        fields.setdefault("is_final", transcription.get("is_final", False))

    recording_urls = fields.pop("recording_urls", None)
    if isinstance(recording_urls, dict) and not fields.get("recording_url"):
        fields["recording_url"] = recording_urls.get("mp3") or recording_urls.get("wav")

    return TelnyxEvent.model_validate(fields)
