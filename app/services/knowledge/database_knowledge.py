"""Database-backed knowledge provider."""
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db.models import KnowledgeEntry
from app.services.knowledge.base import KnowledgeProvider, KnowledgeSnippet


class DatabaseKnowledgeProvider(KnowledgeProvider):
    """Reads active knowledge base rows. Rows are owned by the dashboard CRUD."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_snippets(self) -> List[KnowledgeSnippet]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(KnowledgeEntry)
                .where(KnowledgeEntry.is_active.is_(True))
                .order_by(KnowledgeEntry.id)
            )
            rows = result.scalars().all()
        return [
            KnowledgeSnippet(
                category=row.category,
                question=row.question,
                answer=row.answer,
                is_active=row.is_active,
            )
            for row in rows
        ]
