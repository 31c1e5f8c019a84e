"""Audit log schemas."""

from typing import List, Optional

from pydantic import Field

from ..models.audit_log import AuditEntityType
from .base import CamelModel, UtcDatetime


class AuditLogCreate(CamelModel):
    """An entry about to be appended. Snapshots are JSON strings."""

    user_id: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    entity_type: AuditEntityType
    entity_id: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    ip_address: Optional[str] = None


class AuditLogRecord(AuditLogCreate):
    id: str
    timestamp: UtcDatetime


class AuditLogListResponse(CamelModel):
    entries: List[AuditLogRecord] = Field(default_factory=list)
    total: int = 0
