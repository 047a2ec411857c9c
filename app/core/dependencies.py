"""FastAPI dependencies."""
from typing import Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.db.database import get_session_factory
from app.services.agent.agent import ConversationEngine
from app.services.business.hours import BusinessHoursService
from app.services.call_session.manager import CallSessionManager
from app.services.knowledge.database_knowledge import DatabaseKnowledgeProvider
from app.services.knowledge.in_memory_knowledge import InMemoryKnowledgeProvider
from app.services.knowledge.repository import KnowledgeRepository
from app.services.notifications.manager import NotificationManager, notification_manager
from app.services.persistence.settings import SystemSettings
from app.services.telephony.client import TelnyxClient

# Shared HTTP client for the provider; closed on shutdown
_telnyx_client: Optional[TelnyxClient] = None


def get_telnyx_client() -> TelnyxClient:
    """Get the shared Telnyx client."""
    global _telnyx_client
    if _telnyx_client is None:
        _telnyx_client = TelnyxClient()
    return _telnyx_client


async def close_telnyx_client() -> None:
    global _telnyx_client
    if _telnyx_client is not None:
        await _telnyx_client.close()
        _telnyx_client = None


def get_notification_manager() -> NotificationManager:
    """Get the process-wide notification manager."""
    return notification_manager


def get_knowledge_repository(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> KnowledgeRepository:
    """Get knowledge repository instance."""
    if settings.knowledge_base_file:
        return KnowledgeRepository(
            provider=InMemoryKnowledgeProvider(knowledge_file=settings.knowledge_base_file)
        )
    return KnowledgeRepository(provider=DatabaseKnowledgeProvider(session_factory))


def get_conversation_engine(
    knowledge_repository: KnowledgeRepository = Depends(get_knowledge_repository),
    notifier: NotificationManager = Depends(get_notification_manager),
) -> ConversationEngine:
    """Get conversation engine."""
    return ConversationEngine(knowledge_repository, notifier)


def build_call_session_manager(
    session_factory: async_sessionmaker,
    telephony: Optional[TelnyxClient] = None,
    knowledge_repository: Optional[KnowledgeRepository] = None,
    notifier: Optional[NotificationManager] = None,
) -> CallSessionManager:
    """Wire a call session manager outside of request handling (e.g. the reaper)."""
    notifier = notifier or notification_manager
    system_settings = SystemSettings(session_factory)
    engine = ConversationEngine(
        knowledge_repository or get_knowledge_repository(session_factory), notifier
    )
    return CallSessionManager(
        telephony=telephony or get_telnyx_client(),
        engine=engine,
        business_hours=BusinessHoursService(system_settings),
        system_settings=system_settings,
        session_factory=session_factory,
        notifier=notifier,
    )


def get_session_manager(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    telephony: TelnyxClient = Depends(get_telnyx_client),
    engine: ConversationEngine = Depends(get_conversation_engine),
    notifier: NotificationManager = Depends(get_notification_manager),
) -> CallSessionManager:
    """Get call session manager. Session state is shared across instances."""
    system_settings = SystemSettings(session_factory)
    return CallSessionManager(
        telephony=telephony,
        engine=engine,
        business_hours=BusinessHoursService(system_settings),
        system_settings=system_settings,
        session_factory=session_factory,
        notifier=notifier,
    )
