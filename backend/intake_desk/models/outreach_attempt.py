"""Outreach attempt database model."""

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class OutreachAttemptType(str, enum.Enum):
    INITIAL_OUTREACH = "initial_outreach"
    FOLLOW_UP = "follow_up"


class OutreachAttemptStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    SKIPPED = "skipped"


class OutreachAttempt(Base):
    """
    One contact event in a client's follow-up sequence.

    Attempt numbers start at 1 and are unique per client.
    """

    __tablename__ = "outreach_attempts"
    __table_args__ = (
        UniqueConstraint("client_id", "attempt_number", name="uq_outreach_client_attempt"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    attempt_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=OutreachAttemptStatus.PENDING.value)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    email_subject = Column(String(500), nullable=True)
    email_preview = Column(Text, nullable=True)
    response_detected = Column(Boolean, nullable=False, default=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
