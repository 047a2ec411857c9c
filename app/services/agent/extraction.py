"""Caller information extraction."""
import logging
import re
from typing import Optional

from app.services.agent.constants import (
    COMPANY_PATTERNS,
    COMPANY_STOP_WORDS,
    MAX_NAME_WORDS,
    NAME_PATTERNS,
    NAME_STOP_WORDS,
    NOT_A_NAME,
    PHONE_PATTERNS,
    REASON_PATTERNS,
)
from app.services.agent.state import ConversationContext

logger = logging.getLogger(__name__)


def clean_name(raw: str) -> Optional[str]:
    """Trim a name capture to the name itself, or None if it isn't one."""
    words = raw.split()
    if not words or words[0].lower() in NOT_A_NAME:
        return None

    name_words = []
    for word in words:
        if word.lower() in NAME_STOP_WORDS or len(name_words) == MAX_NAME_WORDS:
            break
        name_words.append(word)

    return " ".join(name_words) or None


def clean_company(raw: str) -> Optional[str]:
    """Trim trailing punctuation and cut the capture at a clause boundary."""
    words = []
    for word in raw.split():
        if word.lower() in COMPANY_STOP_WORDS:
            break
        words.append(word)
    company = " ".join(words).strip(" ,")
    return company or None


def extract_name(message: str) -> Optional[str]:
    for pattern in NAME_PATTERNS:
        match = pattern.search(message)
        if match:
            name = clean_name(match.group(1))
            if name:
                return name
    return None


def extract_company(message: str) -> Optional[str]:
    for pattern in COMPANY_PATTERNS:
        match = pattern.search(message)
        if match:
            company = clean_company(match.group(1))
            if company:
                return company
    return None


def extract_phone(message: str) -> Optional[str]:
    for pattern in PHONE_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1).strip()
    return None


def extract_reason(message: str) -> Optional[str]:
    for pattern in REASON_PATTERNS:
        match = pattern.search(message)
        if match:
            reason = re.sub(r"\s+", " ", match.group(1)).strip(" ,")
            if reason:
                return reason
    return None


def extract_information(context: ConversationContext, message: str) -> None:
    """
    Fill in any caller fields the message reveals.

    Fields already known are left alone; the first extraction wins.
    """
    if not context.caller_name:
        name = extract_name(message)
        if name and context.set_caller_name(name):
            logger.info(f"[EXTRACTION] Caller name captured - Call: {context.call_id}, Name: {name}")

    if not context.caller_company:
        company = extract_company(message)
        if company and context.set_caller_company(company):
            logger.info(
                f"[EXTRACTION] Caller company captured - Call: {context.call_id}, Company: {company}"
            )

    if not context.caller_phone:
        phone = extract_phone(message)
        if phone:
            context.set_caller_phone(phone)

    if not context.reason_for_call:
        reason = extract_reason(message)
        if reason and context.set_reason_for_call(reason):
            logger.info(f"[EXTRACTION] Reason captured - Call: {context.call_id}, Reason: {reason}")
