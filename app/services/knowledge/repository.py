"""Knowledge repository."""
import logging
import re
from typing import List, Optional
from app.services.knowledge.base import KnowledgeProvider, KnowledgeSnippet

logger = logging.getLogger(__name__)

# Minimum similarity (exclusive) for a snippet to be used as the reply
MATCH_THRESHOLD = 0.6


def calculate_similarity(text1: str, text2: str) -> float:
    """
    Token-overlap similarity between two lowercased strings.

    A token of ``text1`` longer than two characters counts as matched when it
    contains, or is contained in, any token of ``text2``. The score is the
    matched count over the longer token list.
    """
    words1 = re.split(r"\s+", text1.strip())
    words2 = re.split(r"\s+", text2.strip())
    if not words1 or not words2:
        return 0.0

    matches = 0
    for word1 in words1:
        if len(word1) > 2 and any(
            word2 in word1 or word1 in word2 for word2 in words2
        ):
            matches += 1

    return matches / max(len(words1), len(words2))


class KnowledgeRepository:
    """Repository for knowledge base lookups."""

    def __init__(self, provider: KnowledgeProvider):
        self.provider = provider

    async def get_snippets(self) -> List[KnowledgeSnippet]:
        """Get all active snippets."""
        return await self.provider.get_snippets()

    async def find_best_answer(self, message: str) -> Optional[str]:
        """
        Find the answer whose question best matches the message.

        Returns:
            The answer of the highest scoring snippet above the threshold.
            On equal scores the first snippet encountered wins.
        """
        message_lower = message.lower()
        best_score = 0.0
        best_answer: Optional[str] = None

        for snippet in await self.get_snippets():
            score = calculate_similarity(message_lower, snippet.question.lower())
            if score > MATCH_THRESHOLD and (best_answer is None or score > best_score):
                best_score = score
                best_answer = snippet.answer

        if best_answer is not None:
            logger.debug(f"[KNOWLEDGE] Matched snippet with score {best_score:.2f}")
        return best_answer
