"""Email template database model."""

import enum

from sqlalchemy import Boolean, Column, DateTime, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class EmailTemplateType(str, enum.Enum):
    """Workflow stage a template is written for."""
    INITIAL_OUTREACH = "initial_outreach"
    FOLLOW_UP_1 = "follow_up_1"
    FOLLOW_UP_2 = "follow_up_2"
    REFERRAL_INSURANCE = "referral_insurance"
    REFERRAL_SPECIALTY = "referral_specialty"
    REFERRAL_CAPACITY = "referral_capacity"
    REFERRAL_CLINICAL = "referral_clinical"


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    type = Column(String(40), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_by = Column(String(255), nullable=True)
