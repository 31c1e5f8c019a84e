"""
Client Pydantic schemas for request/response validation.

``ClientRecord`` is the shape both storage backends return; the request
models below cover intake, partial updates and the lifecycle actions.
"""

from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..models.client import ClientSource, ClientStatus, ClosedFromWorkflow
from .base import CamelModel, CamelRequest, UtcDatetime
from .text_evaluation import TextEvaluationResult


# =============================================================================
# Client Record
# =============================================================================

class ClientRecord(CamelModel):
    """Full client as stored."""

    id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    status: ClientStatus = ClientStatus.NEW
    source: ClientSource = ClientSource.MANUAL
    form_response_id: Optional[str] = None
    form_timestamp: Optional[UtcDatetime] = None

    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    age: Optional[str] = None
    payment_type: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_member_id: Optional[str] = None
    preferred_times: List[str] = Field(default_factory=list)
    requested_clinician: Optional[str] = None
    assigned_clinician: Optional[str] = None
    presenting_concerns: Optional[str] = None
    suicide_attempt_recent: Optional[str] = None
    psychiatric_hospitalization: Optional[str] = None
    additional_info: Optional[str] = None

    evaluation_score: Optional[int] = None
    evaluation_notes: Optional[str] = None
    referral_reason: Optional[str] = None
    is_duplicate: bool = False
    duplicate_of_client_id: Optional[str] = None

    initial_outreach_date: Optional[UtcDatetime] = None
    follow_up_1_date: Optional[UtcDatetime] = None
    follow_up_2_date: Optional[UtcDatetime] = None
    next_follow_up_due: Optional[UtcDatetime] = None

    scheduled_date: Optional[UtcDatetime] = None
    simple_practice_id: Optional[str] = None
    paperwork_complete: bool = False

    closed_date: Optional[UtcDatetime] = None
    closed_reason: Optional[str] = None
    closed_from_workflow: Optional[ClosedFromWorkflow] = None
    closed_from_status: Optional[ClientStatus] = None

    screener_html: Optional[str] = None
    screener_generated_at: Optional[UtcDatetime] = None

    text_evaluation_result: Optional[TextEvaluationResult] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_closed(self) -> bool:
        return self.closed_date is not None


# =============================================================================
# Client Create/Update Schemas
# =============================================================================

class ClientCreate(CamelRequest):
    """Intake submission, from the intake form or entered by staff."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    source: ClientSource = ClientSource.MANUAL
    form_response_id: Optional[str] = None
    form_timestamp: Optional[UtcDatetime] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    age: Optional[str] = Field(default=None, max_length=20)
    payment_type: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_member_id: Optional[str] = None
    preferred_times: List[str] = Field(default_factory=list)
    requested_clinician: Optional[str] = None
    presenting_concerns: Optional[str] = None
    suicide_attempt_recent: Optional[str] = None
    psychiatric_hospitalization: Optional[str] = None
    additional_info: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be blank")
        return stripped


class ClientUpdate(CamelRequest):
    """
    Partial update. Closure and duplicate fields are deliberately absent:
    they change only through the close, reopen and mark-duplicate actions.
    """

    status: Optional[ClientStatus] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    age: Optional[str] = Field(default=None, max_length=20)
    payment_type: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_member_id: Optional[str] = None
    preferred_times: Optional[List[str]] = None
    requested_clinician: Optional[str] = None
    assigned_clinician: Optional[str] = None
    presenting_concerns: Optional[str] = None
    suicide_attempt_recent: Optional[str] = None
    psychiatric_hospitalization: Optional[str] = None
    additional_info: Optional[str] = None
    evaluation_notes: Optional[str] = None
    referral_reason: Optional[str] = None
    initial_outreach_date: Optional[UtcDatetime] = None
    follow_up_1_date: Optional[UtcDatetime] = None
    follow_up_2_date: Optional[UtcDatetime] = None
    next_follow_up_due: Optional[UtcDatetime] = None
    scheduled_date: Optional[UtcDatetime] = None
    simple_practice_id: Optional[str] = None
    paperwork_complete: Optional[bool] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self) -> "ClientUpdate":
        for name in ("status", "first_name", "last_name", "email", "paperwork_complete"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class ClientUpdateResponse(CamelModel):
    """Updated client plus any non-fatal problems from follow-up steps."""

    client: ClientRecord
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# Lifecycle Actions
# =============================================================================

class CloseClientRequest(CamelRequest):
    reason: str = Field(..., min_length=1, max_length=2000)
    status: ClientStatus = ClientStatus.CLOSED_OTHER

    @field_validator("status")
    @classmethod
    def must_be_closing_status(cls, v: ClientStatus) -> ClientStatus:
        if v not in (ClientStatus.CLOSED_NO_CONTACT, ClientStatus.CLOSED_OTHER):
            raise ValueError("status must be closed_no_contact or closed_other")
        return v


class ReopenClientRequest(CamelRequest):
    reason: str = Field(..., min_length=10, max_length=2000)
    new_status: ClientStatus


class MarkDuplicateRequest(CamelRequest):
    duplicate_of_client_id: str = Field(..., min_length=1)


class CaseReopenHistoryRecord(CamelModel):
    id: str
    client_id: str
    reopened_at: UtcDatetime
    reopened_by: str
    reopen_reason: str
    previous_status: ClientStatus
    new_status: ClientStatus
    closed_date: Optional[UtcDatetime] = None
    closed_reason: Optional[str] = None
    closed_from_workflow: Optional[ClosedFromWorkflow] = None


class ClosedClientsResponse(CamelModel):
    clients: List[ClientRecord]
    total: int
