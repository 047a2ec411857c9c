"""System settings persistence."""
import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import SystemSetting

logger = logging.getLogger(__name__)

# Setting keys read by the call flow
BUSINESS_HOURS_START = "business_hours_start"
BUSINESS_HOURS_END = "business_hours_end"
BUSINESS_DAYS = "business_days"
BUSINESS_TIMEZONE = "business_timezone"
TRANSFER_SIP_ENDPOINT = "transfer_sip_endpoint"
VOICEMAIL_MESSAGE = "voicemail_message"


class SettingsPersistenceService:
    """Service for reading and writing system settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_setting(self, key: str) -> Optional[str]:
        """Get a setting value, or None if unset."""
        result = await self.db.execute(
            select(SystemSetting).where(SystemSetting.setting_key == key)
        )
        setting = result.scalar_one_or_none()
        return setting.setting_value if setting else None

    async def set_setting(
        self, key: str, value: str, description: Optional[str] = None
    ) -> SystemSetting:
        """Create or update a setting."""
        result = await self.db.execute(
            select(SystemSetting).where(SystemSetting.setting_key == key)
        )
        setting = result.scalar_one_or_none()
        if setting:
            setting.setting_value = value
            if description is not None:
                setting.description = description
        else:
            setting = SystemSetting(
                setting_key=key, setting_value=value, description=description
            )
            self.db.add(setting)
        await self.db.commit()
        await self.db.refresh(setting)
        return setting


class SystemSettings:
    """Read-only settings lookup for long-lived services.

    Opens a short database session per lookup so it can be shared across
    requests and background tasks.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_setting(self, key: str) -> Optional[str]:
        async with self.session_factory() as db:
            value = await SettingsPersistenceService(db).get_setting(key)
        if value is not None:
            value = value.strip()
        return value or None
