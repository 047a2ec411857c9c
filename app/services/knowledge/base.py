"""Knowledge base provider interface."""
from abc import ABC, abstractmethod
from typing import List
from pydantic import BaseModel


class KnowledgeSnippet(BaseModel):
    """Question/answer snippet the agent can read back to callers."""

    category: str = "general"
    question: str
    answer: str
    is_active: bool = True


class KnowledgeProvider(ABC):
    """Abstract base class for knowledge base providers."""

    @abstractmethod
    async def get_snippets(self) -> List[KnowledgeSnippet]:
        """Get all active snippets, in stored order."""
        pass
