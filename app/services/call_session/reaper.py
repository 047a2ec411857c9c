"""Periodic idle-session reaper."""
import asyncio
import logging

from app.services.call_session.manager import CallSessionManager

logger = logging.getLogger(__name__)


async def run_session_reaper(manager: CallSessionManager, interval_seconds: float) -> None:
    """Call cleanup_inactive_sessions every interval until cancelled."""
    logger.info(f"[REAPER] Started - interval: {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            reaped = await manager.cleanup_inactive_sessions()
            if reaped:
                logger.info(f"[REAPER] Reaped {reaped} inactive session(s)")
        except Exception as e:
            logger.error(
                f"[REAPER] Cleanup pass failed - Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
