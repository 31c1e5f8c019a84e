"""
Client database model.

A client is one intake submission tracked through evaluation, outreach,
scheduling and closure. Clients are never hard-deleted; the lifecycle is
expressed entirely through ``status`` and the closure fields.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


# =============================================================================
# Enum Definitions
# =============================================================================

class ClientStatus(str, enum.Enum):
    """Lifecycle status of a client."""
    NEW = "new"
    PENDING_EVALUATION = "pending_evaluation"
    EVALUATION_COMPLETE = "evaluation_complete"
    EVALUATION_FLAGGED = "evaluation_flagged"
    PENDING_OUTREACH = "pending_outreach"
    OUTREACH_SENT = "outreach_sent"
    FOLLOW_UP_1 = "follow_up_1"
    FOLLOW_UP_2 = "follow_up_2"
    REPLIED = "replied"
    READY_TO_SCHEDULE = "ready_to_schedule"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    PENDING_REFERRAL = "pending_referral"
    REFERRED = "referred"
    CLOSED_NO_CONTACT = "closed_no_contact"
    CLOSED_OTHER = "closed_other"
    DUPLICATE = "duplicate"


class ClientSource(str, enum.Enum):
    GOOGLE_FORM = "google_form"
    MANUAL = "manual"


class ClosedFromWorkflow(str, enum.Enum):
    """Workflow stage a client was in when it was closed."""
    EVALUATION = "evaluation"
    OUTREACH = "outreach"
    SCHEDULING = "scheduling"
    REFERRAL = "referral"


# =============================================================================
# Client Model
# =============================================================================

class Client(Base):
    """Intake record for a prospective therapy client."""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    status = Column(String(40), nullable=False, default=ClientStatus.NEW.value, index=True)
    source = Column(String(20), nullable=False, default=ClientSource.MANUAL.value)
    form_response_id = Column(String(255), nullable=True)
    form_timestamp = Column(DateTime(timezone=True), nullable=True)

    # Intake answers
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(40), nullable=True)
    age = Column(String(20), nullable=True)
    payment_type = Column(String(100), nullable=True)
    insurance_provider = Column(String(255), nullable=True)
    insurance_member_id = Column(String(100), nullable=True)
    preferred_times = Column(JSON, nullable=False, default=list)
    requested_clinician = Column(String(255), nullable=True)
    assigned_clinician = Column(String(255), nullable=True)
    presenting_concerns = Column(Text, nullable=True)
    suicide_attempt_recent = Column(String(100), nullable=True)
    psychiatric_hospitalization = Column(String(100), nullable=True)
    additional_info = Column(Text, nullable=True)

    # Evaluation
    evaluation_score = Column(Integer, nullable=True)
    evaluation_notes = Column(Text, nullable=True)
    referral_reason = Column(Text, nullable=True)
    is_duplicate = Column(Boolean, nullable=False, default=False)
    duplicate_of_client_id = Column(String(36), nullable=True)

    # Communication
    initial_outreach_date = Column(DateTime(timezone=True), nullable=True)
    follow_up_1_date = Column(DateTime(timezone=True), nullable=True)
    follow_up_2_date = Column(DateTime(timezone=True), nullable=True)
    next_follow_up_due = Column(DateTime(timezone=True), nullable=True, index=True)

    # Scheduling
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    simple_practice_id = Column(String(100), nullable=True)
    paperwork_complete = Column(Boolean, nullable=False, default=False)

    # Closure
    closed_date = Column(DateTime(timezone=True), nullable=True, index=True)
    closed_reason = Column(Text, nullable=True)
    closed_from_workflow = Column(String(20), nullable=True)
    closed_from_status = Column(String(40), nullable=True)

    # Screener
    screener_html = Column(Text, nullable=True)
    screener_generated_at = Column(DateTime(timezone=True), nullable=True)

    # Free-text evaluation, as JSON
    text_evaluation_result = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, status={self.status})>"
