"""
Referral clinic schemas.

Clinic ``customFields`` keys must match a definition in the practice-wide
ReferralClinicsConfig; the check happens in the router because it needs
the stored config.
"""

import re
from typing import Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from ..models.referral_clinic import CustomFieldType
from .base import CamelModel, CamelRequest, UtcDatetime


FIELD_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


def _dedupe(specialties: List[str]) -> List[str]:
    seen: List[str] = []
    for specialty in (s.strip() for s in specialties):
        if specialty and specialty not in seen:
            seen.append(specialty)
    return seen


# =============================================================================
# Custom Field Configuration
# =============================================================================

class CustomFieldDefinition(CamelModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=255)
    type: CustomFieldType = CustomFieldType.TEXT
    order: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not FIELD_NAME_PATTERN.match(v):
            raise ValueError("Custom field name must start with a letter and use letters, digits or _")
        return v


class ReferralClinicsConfigRecord(CamelModel):
    custom_fields: List[CustomFieldDefinition] = Field(default_factory=list)
    updated_at: Optional[UtcDatetime] = None


class SaveCustomFieldsRequest(CamelRequest):
    custom_fields: List[CustomFieldDefinition]

    @field_validator("custom_fields")
    @classmethod
    def unique_names(cls, v: List[CustomFieldDefinition]) -> List[CustomFieldDefinition]:
        names = [field.name for field in v]
        if len(names) != len(set(names)):
            raise ValueError("Custom field names must be unique")
        return sorted(v, key=lambda field: field.order)


# =============================================================================
# Referral Clinic
# =============================================================================

class ReferralClinicRecord(CamelModel):
    id: str
    practice_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    custom_fields: Dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ReferralClinicCreate(CamelRequest):
    practice_name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[EmailStr] = None
    specialties: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    custom_fields: Dict[str, str] = Field(default_factory=dict)
    is_active: bool = True

    @field_validator("specialties")
    @classmethod
    def dedupe_specialties(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class ReferralClinicUpdate(CamelRequest):
    practice_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[EmailStr] = None
    specialties: Optional[List[str]] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, str]] = None
    is_active: Optional[bool] = None

    @field_validator("specialties")
    @classmethod
    def dedupe_specialties(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _dedupe(v)
