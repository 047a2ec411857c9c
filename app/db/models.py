"""Database models."""
from datetime import datetime
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Contact(Base):
    """Caller contact model."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    company = Column(String, nullable=True)
    phone_number = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    is_spam = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    call_logs = relationship("CallLog", back_populates="contact")


class CallLog(Base):
    """Call log model. Written once when a call session terminates."""

    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)
    call_id = Column(String, index=True, nullable=True)  # provider call session id
    call_control_id = Column(String, index=True, nullable=False)
    phone_number = Column(String, nullable=False)
    direction = Column(String, default="inbound", nullable=False)  # inbound, outbound
    status = Column(String, nullable=False)  # answered, missed, transferred, spam, voicemail, in-progress
    duration = Column(Integer, default=0, nullable=False)  # seconds
    transcript = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    lead_qualified = Column(Boolean, default=False, nullable=False)
    caller_name = Column(String, nullable=True)
    caller_company = Column(String, nullable=True)
    reason_for_call = Column(Text, nullable=True)
    transferred_to_human = Column(Boolean, default=False, nullable=False)
    recording_url = Column(String, nullable=True)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    contact = relationship("Contact", back_populates="call_logs")


class KnowledgeEntry(Base):
    """Knowledge base question/answer snippet."""

    __tablename__ = "knowledge_base"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String, nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SystemSetting(Base):
    """Key/value business configuration."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String, unique=True, index=True, nullable=False)
    setting_value = Column(Text, nullable=False)
    description = Column(String, nullable=True)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
