"""Business hours lookup."""
import logging
import re
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings
from app.services.persistence.settings import (
    BUSINESS_DAYS,
    BUSINESS_HOURS_END,
    BUSINESS_HOURS_START,
    BUSINESS_TIMEZONE,
    SystemSettings,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DEFAULT_BUSINESS_DAYS = "monday,tuesday,wednesday,thursday,friday"
DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 18

_HOUR_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([ap]\.?m\.?)?\s*$", re.IGNORECASE)


def parse_hour(value: Optional[str], default: int) -> int:
    """Parse '9', '17', '9:00', '6 PM' or '6:00 pm' into a 0-23 hour."""
    if not value:
        return default
    match = _HOUR_RE.match(value)
    if not match:
        logger.warning(f"[BUSINESS HOURS] Unparseable hour setting '{value}', using {default}")
        return default

    hour = int(match.group(1))
    meridiem = (match.group(3) or "").lower().replace(".", "")
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if not 0 <= hour <= 24:
        return default
    return hour


def format_hour(hour: int) -> str:
    """Format a 0-24 hour as '9:00 AM'."""
    hour = hour % 24
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display}:00 {suffix}"


def parse_days(value: Optional[str]) -> List[str]:
    days = (value or DEFAULT_BUSINESS_DAYS).split(",")
    return [day.strip().lower() for day in days if day.strip().lower() in DAY_NAMES]


def format_days(days: List[str]) -> str:
    ordered = [day for day in DAY_NAMES if day in days]
    if not ordered:
        return "by appointment"
    indexes = [DAY_NAMES.index(day) for day in ordered]
    if len(ordered) > 2 and indexes == list(range(indexes[0], indexes[-1] + 1)):
        return f"{ordered[0].title()} through {ordered[-1].title()}"
    return ", ".join(day.title() for day in ordered)


class BusinessHoursService:
    """Decides whether the business is open from the system settings."""

    def __init__(self, system_settings: SystemSettings):
        self.system_settings = system_settings

    async def _timezone(self) -> ZoneInfo:
        name = await self.system_settings.get_setting(BUSINESS_TIMEZONE) or settings.business_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"[BUSINESS HOURS] Unknown timezone '{name}', using UTC")
            return ZoneInfo("UTC")

    async def is_open(self, now: Optional[datetime] = None) -> bool:
        """Check if the business is open right now (or at ``now``)."""
        start = parse_hour(
            await self.system_settings.get_setting(BUSINESS_HOURS_START), DEFAULT_START_HOUR
        )
        end = parse_hour(
            await self.system_settings.get_setting(BUSINESS_HOURS_END), DEFAULT_END_HOUR
        )
        days = parse_days(await self.system_settings.get_setting(BUSINESS_DAYS))

        tz = await self._timezone()
        if now is None:
            local = datetime.now(tz)
        elif now.tzinfo is None:
            local = now
        else:
            local = now.astimezone(tz)

        day_name = DAY_NAMES[local.weekday()]
        return day_name in days and start <= local.hour < end

    async def get_after_hours_message(self) -> str:
        start = parse_hour(
            await self.system_settings.get_setting(BUSINESS_HOURS_START), DEFAULT_START_HOUR
        )
        end = parse_hour(
            await self.system_settings.get_setting(BUSINESS_HOURS_END), DEFAULT_END_HOUR
        )
        days = parse_days(await self.system_settings.get_setting(BUSINESS_DAYS))

        return (
            "Thank you for calling! Our office is currently closed. "
            f"Our business hours are {format_days(days)}, "
            f"{format_hour(start)} to {format_hour(end)}. "
            "Please leave a message and we'll get back to you as soon as possible, "
            "or you can call back during business hours."
        )
