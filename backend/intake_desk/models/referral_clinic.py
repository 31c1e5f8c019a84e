"""
Referral clinic database models.

Clinics carry a free-form ``custom_fields`` mapping whose keys are defined
once for the whole practice in ``ReferralClinicsConfig``.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class CustomFieldType(str, enum.Enum):
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    TEXTAREA = "textarea"


class ReferralClinic(Base):
    """External practice clients can be referred to."""

    __tablename__ = "referral_clinics"

    id = Column(String(36), primary_key=True, default=new_id)
    practice_name = Column(String(255), nullable=False, index=True)
    address = Column(Text, nullable=True)
    phone = Column(String(40), nullable=True)
    email = Column(String(255), nullable=True)
    specialties = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    custom_fields = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class ReferralClinicsConfig(Base):
    """Single-row table holding the custom field definitions."""

    __tablename__ = "referral_clinics_config"

    id = Column(Integer, primary_key=True, default=1)
    custom_fields = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
