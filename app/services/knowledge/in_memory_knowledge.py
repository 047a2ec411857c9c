"""In-memory knowledge provider."""
import yaml
from pathlib import Path
from typing import List, Optional
from app.services.knowledge.base import KnowledgeProvider, KnowledgeSnippet


class InMemoryKnowledgeProvider(KnowledgeProvider):
    """In-memory knowledge provider using YAML configuration."""

    def __init__(self, knowledge_file: Optional[str] = None):
        """Initialize with optional knowledge file path."""
        if knowledge_file is None:
            knowledge_file = Path(__file__).parent / "data" / "knowledge.yaml"
        self.knowledge_file = Path(knowledge_file)
        self._snippets: Optional[List[KnowledgeSnippet]] = None

    async def _load_snippets(self) -> List[KnowledgeSnippet]:
        """Load snippets from YAML file."""
        if self._snippets is None:
            if not self.knowledge_file.exists():
                self._snippets = []
            else:
                with open(self.knowledge_file, "r") as f:
                    data = yaml.safe_load(f) or {}
                self._snippets = [
                    KnowledgeSnippet(**entry) for entry in data.get("entries", [])
                ]
        return self._snippets

    async def get_snippets(self) -> List[KnowledgeSnippet]:
        """Get all active snippets."""
        snippets = await self._load_snippets()
        return [snippet for snippet in snippets if snippet.is_active]
