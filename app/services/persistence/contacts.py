"""Contact persistence service."""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.models import Contact


class ContactPersistenceService:
    """Service for persisting caller contacts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_contact_by_phone(self, phone_number: str) -> Optional[Contact]:
        """Get contact by phone number."""
        result = await self.db.execute(
            select(Contact).where(Contact.phone_number == phone_number)
        )
        return result.scalar_one_or_none()

    async def create_contact(
        self,
        phone_number: str,
        name: Optional[str] = None,
        company: Optional[str] = None,
        is_spam: bool = False,
    ) -> Contact:
        """Create a new contact."""
        contact = Contact(
            name=name,
            company=company,
            phone_number=phone_number,
            is_spam=is_spam,
        )
        self.db.add(contact)
        await self.db.commit()
        await self.db.refresh(contact)
        return contact
