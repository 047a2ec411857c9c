"""Call log persistence service."""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from app.db.models import CallLog


class CallLogPersistenceService:
    """Service for persisting call log data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_call_log(
        self,
        call_control_id: str,
        phone_number: str,
        status: str,
        started_at: datetime,
        ended_at: Optional[datetime] = None,
        contact_id: Optional[int] = None,
        call_id: Optional[str] = None,
        direction: str = "inbound",
        duration: int = 0,
        transcript: Optional[str] = None,
        summary: Optional[str] = None,
        lead_qualified: bool = False,
        caller_name: Optional[str] = None,
        caller_company: Optional[str] = None,
        reason_for_call: Optional[str] = None,
        transferred_to_human: bool = False,
    ) -> CallLog:
        """Create a call log row."""
        call_log = CallLog(
            contact_id=contact_id,
            call_id=call_id,
            call_control_id=call_control_id,
            phone_number=phone_number,
            direction=direction,
            status=status,
            duration=duration,
            transcript=transcript,
            summary=summary,
            lead_qualified=lead_qualified,
            caller_name=caller_name,
            caller_company=caller_company,
            reason_for_call=reason_for_call,
            transferred_to_human=transferred_to_human,
            started_at=started_at,
            ended_at=ended_at,
        )
        self.db.add(call_log)
        await self.db.commit()
        await self.db.refresh(call_log)
        return call_log

    async def get_call_log(self, call_log_id: int) -> Optional[CallLog]:
        """Get a call log by primary key."""
        result = await self.db.execute(
            select(CallLog).where(CallLog.id == call_log_id)
        )
        return result.scalar_one_or_none()

    async def get_call_log_by_control_id(self, call_control_id: str) -> Optional[CallLog]:
        """Get the call log written for a call-control id."""
        result = await self.db.execute(
            select(CallLog)
            .where(CallLog.call_control_id == call_control_id)
            .order_by(desc(CallLog.id))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_call_logs(self, limit: int = 100) -> List[CallLog]:
        """List call logs, newest first."""
        result = await self.db.execute(
            select(CallLog).order_by(desc(CallLog.started_at)).limit(limit)
        )
        return list(result.scalars().all())

    async def update_recording_url(
        self, call_control_id: str, recording_url: str
    ) -> Optional[CallLog]:
        """Attach a recording URL that arrived after the call ended."""
        call_log = await self.get_call_log_by_control_id(call_control_id)
        if call_log:
            call_log.recording_url = recording_url
            await self.db.commit()
            await self.db.refresh(call_log)
        return call_log
