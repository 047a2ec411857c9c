"""Notification API endpoints."""
from fastapi import APIRouter, Depends

from app.core.dependencies import get_notification_manager
from app.services.notifications.manager import NotificationManager

router = APIRouter()


@router.get("/api/notifications")
async def list_notifications(
    limit: int = 50,
    notifier: NotificationManager = Depends(get_notification_manager),
):
    """Most recent notifications first."""
    return [notification.model_dump(mode="json") for notification in notifier.get_notifications(limit)]
