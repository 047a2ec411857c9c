"""Telnyx call-control client."""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_VOICEMAIL_MESSAGE = (
    "Thank you for calling. Please leave a detailed message after the beep, "
    "and we'll get back to you as soon as possible."
)


class TelephonyError(Exception):
    """A call-control command failed (provider error, transport, or config)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TelnyxClient:
    """Wraps the Telnyx call-control REST API. Knows nothing about sessions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        voice: Optional[str] = None,
        language: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = settings.telnyx_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.telnyx_api_base_url).rstrip("/")
        self.webhook_secret = (
            settings.telnyx_webhook_secret if webhook_secret is None else webhook_secret
        )
        self.voice = voice or settings.telnyx_voice
        self.language = language or settings.telnyx_language
        self._client = client

        if not self.api_key:
            logger.warning("[TELNYX] TELNYX_API_KEY is not configured; call control is disabled")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(15.0, connect=5.0),
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self, method: str, endpoint: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise TelephonyError("TELNYX_API_KEY is not configured")

        client = self._get_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}{endpoint}",
                json=body,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise TelephonyError(f"Telnyx request failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"[TELNYX] API error - {method} {endpoint}, "
                f"Status: {response.status_code}, Body: {response.text[:500]}"
            )
            raise TelephonyError(
                f"Telnyx API error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        return response.json() if response.content else {}

    async def answer_call(self, call_control_id: str) -> None:
        """Answer an incoming call."""
        await self._request("POST", f"/calls/{call_control_id}/actions/answer")

    async def hangup_call(self, call_control_id: str) -> None:
        """Hang up a call."""
        await self._request("POST", f"/calls/{call_control_id}/actions/hangup")

    async def start_transcription(self, call_control_id: str) -> None:
        """Start provider-side transcription of the caller's audio."""
        await self._request(
            "POST",
            f"/calls/{call_control_id}/actions/transcription_start",
            {
                "transcription_engine": "A",
                "transcription_language": self.language.split("-")[0],
                "transcription_tracks": "inbound_track",
            },
        )

    async def stop_transcription(self, call_control_id: str) -> None:
        """Stop provider-side transcription."""
        await self._request("POST", f"/calls/{call_control_id}/actions/transcription_stop")

    async def speak_text(self, call_control_id: str, text: str) -> None:
        """Speak text on the call using text-to-speech."""
        await self._request(
            "POST",
            f"/calls/{call_control_id}/actions/speak",
            {"payload": text, "voice": self.voice, "language": self.language},
        )

    async def transfer_call(self, call_control_id: str, to: str) -> None:
        """Transfer the call to a number or SIP URI."""
        await self._request(
            "POST", f"/calls/{call_control_id}/actions/transfer", {"to": to}
        )

    async def start_recording(self, call_control_id: str) -> None:
        """Start recording the call (single channel mp3 with a beep)."""
        await self._request(
            "POST",
            f"/calls/{call_control_id}/actions/record_start",
            {"format": "mp3", "channels": "single", "play_beep": True},
        )

    async def send_to_voicemail(
        self, call_control_id: str, message: Optional[str] = None
    ) -> None:
        """Speak the voicemail prompt, then start recording."""
        await self.speak_text(call_control_id, message or DEFAULT_VOICEMAIL_MESSAGE)
        await self.start_recording(call_control_id)

    async def get_call_info(self, call_control_id: str) -> Dict[str, Any]:
        """Get call status from the provider."""
        return await self._request("GET", f"/calls/{call_control_id}")

    async def create_call(self, to: str, from_: str, connection_id: str) -> Dict[str, Any]:
        """Create an outbound call."""
        return await self._request(
            "POST",
            "/calls",
            {"to": to, "from": from_, "connection_id": connection_id},
        )

    def validate_webhook_signature(
        self, payload: bytes, signature: str, timestamp: str
    ) -> bool:
        """
        Verify a webhook HMAC-SHA256 signature over ``timestamp + payload``.

        Returns True without checking when no secret is configured.
        """
        if not self.webhook_secret:
            logger.warning(
                "[TELNYX] TELNYX_WEBHOOK_SECRET not configured; skipping signature check (insecure)"
            )
            return True

        if not signature or not timestamp:
            return False

        expected = hmac.new(
            self.webhook_secret.encode(),
            timestamp.encode() + payload,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(signature.encode(), expected.encode())
