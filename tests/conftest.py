"""Shared test fixtures and configuration."""
import pytest
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TELNYX_API_KEY", "test-key")

from app.main import app
from app.db.database import Base, get_db, get_session_factory
from app.core.dependencies import (
    get_knowledge_repository,
    get_notification_manager,
    get_session_manager,
    get_telnyx_client,
)
from app.services.agent.agent import ConversationEngine
from app.services.call_session.manager import CallSessionManager, clear_sessions
from app.services.knowledge.in_memory_knowledge import InMemoryKnowledgeProvider
from app.services.knowledge.repository import KnowledgeRepository
from app.services.notifications.manager import NotificationManager
from app.services.persistence.settings import SystemSettings


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_knowledge_path():
    """Return path to test knowledge base YAML file."""
    return Path(__file__).parent / "fixtures" / "test_knowledge.yaml"


@pytest.fixture
def test_knowledge_repository(test_knowledge_path):
    """Create knowledge repository with test data."""
    provider = InMemoryKnowledgeProvider(knowledge_file=str(test_knowledge_path))
    return KnowledgeRepository(provider)


@pytest.fixture
def notifier():
    """Fresh notification manager per test."""
    return NotificationManager(queue_size=10)


@pytest.fixture
def mock_telephony():
    """Telnyx client double: every call-control command succeeds."""
    telephony = MagicMock()
    telephony.api_key = "test-key"
    telephony.answer_call = AsyncMock()
    telephony.hangup_call = AsyncMock()
    telephony.start_transcription = AsyncMock()
    telephony.stop_transcription = AsyncMock()
    telephony.speak_text = AsyncMock()
    telephony.transfer_call = AsyncMock()
    telephony.send_to_voicemail = AsyncMock()
    telephony.get_call_info = AsyncMock(return_value={"data": {}})
    telephony.create_call = AsyncMock(return_value={"data": {}})
    telephony.validate_webhook_signature = Mock(return_value=True)
    return telephony


@pytest.fixture
def open_business_hours():
    """Business hours double that is always open."""
    business_hours = Mock()
    business_hours.is_open = AsyncMock(return_value=True)
    business_hours.get_after_hours_message = AsyncMock(
        return_value="Our office is currently closed."
    )
    return business_hours


@pytest.fixture
def conversation_engine(test_knowledge_repository, notifier):
    """Conversation engine backed by the test knowledge base."""
    return ConversationEngine(test_knowledge_repository, notifier)


@pytest.fixture
def call_session_manager(
    mock_telephony, conversation_engine, open_business_hours, session_factory, notifier
):
    """Call session manager wired to test doubles and the test database."""
    return CallSessionManager(
        telephony=mock_telephony,
        engine=conversation_engine,
        business_hours=open_business_hours,
        system_settings=SystemSettings(session_factory),
        session_factory=session_factory,
        notifier=notifier,
        idle_timeout_seconds=60,
    )


@pytest.fixture(autouse=True)
def clean_call_sessions():
    """Clean up call sessions before and after tests."""
    clear_sessions()
    yield
    clear_sessions()


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
def test_client(
    override_get_db,
    session_factory,
    mock_telephony,
    notifier,
    test_knowledge_repository,
):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_telnyx_client] = lambda: mock_telephony
    app.dependency_overrides[get_notification_manager] = lambda: notifier
    app.dependency_overrides[get_knowledge_repository] = lambda: test_knowledge_repository

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def mock_session_manager():
    """Session manager double for webhook dispatch tests."""
    manager = MagicMock()
    manager.handle_call_start = AsyncMock()
    manager.handle_call_end = AsyncMock()
    manager.process_transcription = AsyncMock()
    manager.get_active_sessions = Mock(return_value=[])
    return manager


@pytest.fixture
def webhook_client(test_client, mock_session_manager):
    """Test client whose webhook dispatches to the session manager double."""
    app.dependency_overrides[get_session_manager] = lambda: mock_session_manager
    return test_client
