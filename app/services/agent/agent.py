"""Conversation engine: decides, per utterance, how the call proceeds."""
import logging
from typing import Callable, List, Optional, Pattern, Tuple
from pydantic import BaseModel

from app.services.agent.constants import (
    ASK_COMPANY,
    ASK_NAME,
    ASK_REASON,
    BUSINESS_KEYWORDS,
    CLARIFY,
    COMPLETION_CLOSING,
    COMPLETION_PATTERNS,
    ENGINE_FALLBACK,
    LEAD_SCORE_COMPANY,
    LEAD_SCORE_MAX,
    LEAD_SCORE_NAME,
    LEAD_SCORE_PHONE,
    LEAD_SCORE_REASON,
    PERSONALIZED_FOLLOW_UP,
    QUALIFIED_HANDOFF,
    SPAM_CLOSING,
    SPAM_PATTERNS,
    TRANSFER_HOLD,
    TRANSFER_PATTERNS,
)
from app.services.agent.extraction import extract_information
from app.services.agent.state import ConversationContext, Speaker
from app.services.call_session.models import CallSession
from app.services.knowledge.repository import KnowledgeRepository
from app.services.notifications.manager import NotificationManager

logger = logging.getLogger(__name__)


class AgentDecision(BaseModel):
    """Outcome of one caller utterance."""

    reply: str
    should_transfer: bool = False
    call_complete: bool = False
    lead_qualified: bool = False
    spam_detected: bool = False


def match_category(table: List[Tuple[str, Pattern]], message: str) -> Optional[str]:
    """Return the category of the first pattern in the table that matches."""
    for category, pattern in table:
        if pattern.search(message):
            return category
    return None


def is_business_inquiry(message: str) -> bool:
    message_lower = message.lower()
    return any(keyword in message_lower for keyword in BUSINESS_KEYWORDS)


def qualification_met(context: ConversationContext) -> bool:
    """A lead is qualified once name, reason and a phone number are known."""
    return bool(context.caller_name and context.reason_for_call and context.has_phone)


def calculate_lead_score(context: ConversationContext) -> int:
    score = 0
    if context.caller_name:
        score += LEAD_SCORE_NAME
    if context.caller_company:
        score += LEAD_SCORE_COMPANY
    if context.has_phone:
        score += LEAD_SCORE_PHONE
    if context.reason_for_call:
        score += LEAD_SCORE_REASON
    return min(score, LEAD_SCORE_MAX)


class ConversationEngine:
    """Pattern-driven conversation engine.

    Mutates the session's ConversationContext as a side effect: appends
    history, fills extracted fields and raises flags.
    """

    def __init__(
        self,
        knowledge_repository: KnowledgeRepository,
        notifier: NotificationManager,
    ):
        self.knowledge_repository = knowledge_repository
        self.notifier = notifier

    async def process_message(self, session: CallSession, utterance: str) -> AgentDecision:
        """
        Process one finalized caller utterance.

        Decision order, first terminal match wins:
            1. spam patterns
            2. transfer intent (or a transfer already requested)
            3. caller closing phrase
            4. knowledge base answer or the information-gathering ladder
        Extraction runs on every non-spam utterance before the transfer check.
        """
        context = session.conversation
        context.add_turn(Speaker.CALLER, utterance)

        logger.info(f"[AGENT] Processing utterance - Call: {context.call_id}, Text: '{utterance[:200]}'")

        spam_category = match_category(SPAM_PATTERNS, utterance)
        if spam_category:
            context.mark_spam()
            context.add_turn(Speaker.AGENT, SPAM_CLOSING)
            logger.info(f"[AGENT] Spam detected - Call: {context.call_id}, Category: {spam_category}")
            self._notify(
                self.notifier.notify_spam_detected,
                context.phone_number,
                "Automated spam patterns detected in conversation",
            )
            return AgentDecision(
                reply=SPAM_CLOSING,
                call_complete=True,
                lead_qualified=context.lead_qualified,
                spam_detected=True,
            )

        extract_information(context, utterance)

        transfer_category = match_category(TRANSFER_PATTERNS, utterance)
        if transfer_category or context.transfer_requested:
            context.mark_transfer_requested()
            context.add_turn(Speaker.AGENT, TRANSFER_HOLD)
            logger.info(
                f"[AGENT] Transfer requested - Call: {context.call_id}, "
                f"Category: {transfer_category or 'previous turn'}"
            )
            return AgentDecision(
                reply=TRANSFER_HOLD,
                should_transfer=True,
                call_complete=True,
                lead_qualified=context.lead_qualified,
            )

        if match_category(COMPLETION_PATTERNS, utterance):
            context.add_turn(Speaker.AGENT, COMPLETION_CLOSING)
            logger.info(f"[AGENT] Caller finished - Call: {context.call_id}")
            return AgentDecision(
                reply=COMPLETION_CLOSING,
                call_complete=True,
                lead_qualified=context.lead_qualified,
            )

        try:
            reply, hand_off = await self._generate_response(context, utterance)
        except Exception as e:
            logger.error(
                f"[AGENT] Error generating response - Call: {context.call_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            reply, hand_off = ENGINE_FALLBACK, True

        context.add_turn(Speaker.AGENT, reply)
        self._update_lead_qualification(context)

        if hand_off:
            context.mark_transfer_requested()
            logger.info(f"[AGENT] Handing off to a specialist - Call: {context.call_id}")

        return AgentDecision(
            reply=reply,
            should_transfer=hand_off,
            call_complete=hand_off,
            lead_qualified=context.lead_qualified,
        )

    async def _generate_response(
        self, context: ConversationContext, utterance: str
    ) -> Tuple[str, bool]:
        """Return the reply and whether it hands the caller off."""
        answer = await self.knowledge_repository.find_best_answer(utterance)
        if answer:
            return self._personalize(context, answer), False

        if not context.caller_name:
            return ASK_NAME, False

        if not context.reason_for_call:
            return ASK_REASON.format(name=context.caller_name), False

        if not context.caller_company and is_business_inquiry(utterance):
            return ASK_COMPANY, False

        if qualification_met(context):
            return (
                QUALIFIED_HANDOFF.format(
                    name=context.caller_name, reason=context.reason_for_call
                ),
                True,
            )

        return CLARIFY, False

    def _personalize(self, context: ConversationContext, answer: str) -> str:
        if context.caller_name and context.caller_name not in answer:
            return PERSONALIZED_FOLLOW_UP.format(answer=answer, name=context.caller_name)
        return answer

    def _update_lead_qualification(self, context: ConversationContext) -> None:
        if context.lead_qualified or not qualification_met(context):
            return

        context.mark_lead_qualified()
        lead_score = calculate_lead_score(context)
        logger.info(f"[AGENT] Lead qualified - Call: {context.call_id}, Score: {lead_score}")
        self._notify(self.notifier.notify_lead_qualified, context.phone_number, lead_score)

    def _notify(self, notify: Callable, *args) -> None:
        try:
            notify(*args)
        except Exception as e:
            logger.warning(f"[AGENT] Notification failed: {type(e).__name__}: {str(e)}")
