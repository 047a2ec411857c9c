"""Agent test endpoint: run an utterance through the engine without a call."""
import logging
import uuid
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.dependencies import get_conversation_engine
from app.services.agent.agent import ConversationEngine
from app.services.call_session.models import CallSession

router = APIRouter()
logger = logging.getLogger(__name__)

TEST_PHONE_NUMBER = "+15555550100"


class AgentTestRequest(BaseModel):
    """Agent test request."""

    message: str = Field(min_length=1)


@router.post("/api/agent/test")
async def test_agent(
    test_request: AgentTestRequest,
    engine: ConversationEngine = Depends(get_conversation_engine),
):
    """Process one message in a throwaway session."""
    test_call_id = f"test-{uuid.uuid4().hex[:8]}"
    session = CallSession(test_call_id, test_call_id, TEST_PHONE_NUMBER)

    decision = await engine.process_message(session, test_request.message)
    logger.info(f"[AGENT TEST] Processed test message - Call: {test_call_id}")

    context = session.conversation
    return {
        **decision.model_dump(),
        "context": context.model_dump(mode="json"),
        "transcript": context.get_transcript_text(),
        "summary": context.get_summary(),
    }
