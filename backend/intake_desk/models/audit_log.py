"""
Audit log database model.

Append-only record of who changed what. Rows are never updated or
deleted after they are written.
"""

import enum

from sqlalchemy import Column, DateTime, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


# =============================================================================
# Enum Definitions
# =============================================================================

class AuditAction(str, enum.Enum):
    """Types of auditable actions."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_UPDATE = "bulk_update"
    EVALUATE = "evaluate"
    CLOSE_CASE = "close_case"
    REOPEN_CASE = "reopen_case"
    MARK_DUPLICATE = "mark_duplicate"
    INITIALIZE_OUTREACH = "initialize_outreach"
    SET_DEFAULT = "set_default"
    TEXT_EVALUATE = "text_evaluate"


class AuditEntityType(str, enum.Enum):
    CLIENT = "client"
    CRITERIA = "criteria"
    OUTREACH = "outreach"
    REFERRAL_CLINIC = "referral_clinic"
    TEMPLATE = "template"
    SETTINGS = "settings"
    TEXT_EVALUATION_RULE = "text_evaluation_rule"


# =============================================================================
# Audit Log Model
# =============================================================================

class AuditLogEntry(Base):
    """
    One audited mutation.

    Attributes:
        id: uuid primary key
        timestamp: when the mutation happened
        user_id / user_email: the acting user
        action: AuditAction value
        entity_type / entity_id: what was changed
        previous_value: JSON snapshot before the change (absent on create)
        new_value: JSON snapshot after the change (absent on delete)
        ip_address: caller address when known
    """

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=new_id)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    user_id = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    action = Column(String(40), nullable=False, index=True)
    entity_type = Column(String(40), nullable=False)
    entity_id = Column(String(100), nullable=True, index=True)
    previous_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLogEntry(id={self.id}, "
            f"action={self.action}, "
            f"entity={self.entity_type}:{self.entity_id})>"
        )
