"""In-process notification publisher for dashboard live updates."""
import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Set
from pydantic import BaseModel, Field

from app.core.config import settings

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A single notification."""

    id: str = Field(default_factory=lambda: f"notif_{uuid.uuid4().hex[:12]}")
    type: str  # call, system, alert, success, error
    title: str
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    read: bool = False
    data: Dict[str, Any] = {}


class NotificationManager:
    """
    Publishes notifications to subscriber queues.

    Publishing never blocks: each subscriber gets a bounded queue and a full
    queue drops the notification for that subscriber only.
    """

    def __init__(self, queue_size: Optional[int] = None, history_size: int = 200):
        self.queue_size = queue_size or settings.notification_queue_size
        self._subscribers: Set[asyncio.Queue] = set()
        self._history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self) -> asyncio.Queue:
        """
        Register a subscriber and return its queue.

        This is the hook for live consumers such as a dashboard stream; the
        HTTP API itself only reads the history via get_notifications.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, notification: Notification) -> Notification:
        """Store and fan out a notification."""
        self._history.append(notification)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                logger.warning(
                    f"[NOTIFICATIONS] Subscriber queue full, dropping {notification.id}"
                )
        return notification

    def get_notifications(self, limit: int = 50) -> List[Notification]:
        """Most recent notifications first."""
        return list(reversed(self._history))[:limit]

    def notify_incoming_call(self, phone_number: str, call_control_id: str) -> Notification:
        return self.publish(
            Notification(
                type="call",
                title="Incoming Call",
                message=f"New call from {phone_number}",
                data={
                    "phone_number": phone_number,
                    "call_control_id": call_control_id,
                    "action": "incoming_call",
                },
            )
        )

    def notify_call_ended(self, phone_number: str, duration: float, outcome: str) -> Notification:
        return self.publish(
            Notification(
                type="call",
                title="Call Ended",
                message=f"Call with {phone_number} ended ({round(duration)}s) - {outcome}",
                data={
                    "phone_number": phone_number,
                    "duration": duration,
                    "outcome": outcome,
                    "action": "call_ended",
                },
            )
        )

    def notify_spam_detected(self, phone_number: str, reason: str) -> Notification:
        return self.publish(
            Notification(
                type="alert",
                title="Spam Call Blocked",
                message=f"Blocked spam call from {phone_number}: {reason}",
                data={"phone_number": phone_number, "reason": reason, "action": "spam_blocked"},
            )
        )

    def notify_lead_qualified(self, phone_number: str, lead_score: int) -> Notification:
        return self.publish(
            Notification(
                type="success",
                title="New Qualified Lead",
                message=f"{phone_number} qualified as lead (score: {lead_score})",
                data={
                    "phone_number": phone_number,
                    "lead_score": lead_score,
                    "action": "lead_qualified",
                },
            )
        )

    def notify_system_error(
        self, error: str, details: Optional[Dict[str, Any]] = None
    ) -> Notification:
        return self.publish(
            Notification(
                type="error",
                title="System Error",
                message=error,
                data={"details": details or {}, "action": "system_error"},
            )
        )


notification_manager = NotificationManager()
