"""Outreach attempt schemas."""

from typing import List, Optional

from pydantic import Field

from ..models.outreach_attempt import OutreachAttemptStatus, OutreachAttemptType
from .base import CamelModel, CamelRequest, UtcDatetime


class OutreachAttemptRecord(CamelModel):
    id: str
    client_id: str
    attempt_number: int
    attempt_type: OutreachAttemptType
    status: OutreachAttemptStatus = OutreachAttemptStatus.PENDING
    sent_at: Optional[UtcDatetime] = None
    email_subject: Optional[str] = None
    email_preview: Optional[str] = None
    response_detected: bool = False
    responded_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class OutreachAttemptCreate(CamelRequest):
    """
    Either ``initialize: true`` (pre-create the configured number of
    attempts) or a single attempt with number and type.
    """

    initialize: bool = False
    attempt_number: Optional[int] = Field(default=None, ge=1)
    attempt_type: Optional[OutreachAttemptType] = None
    status: OutreachAttemptStatus = OutreachAttemptStatus.PENDING
    email_subject: Optional[str] = None
    email_preview: Optional[str] = None


class OutreachAttemptUpdate(CamelRequest):
    attempt_id: str
    status: Optional[OutreachAttemptStatus] = None
    sent_at: Optional[UtcDatetime] = None
    email_subject: Optional[str] = None
    email_preview: Optional[str] = None
    response_detected: Optional[bool] = None
    responded_at: Optional[UtcDatetime] = None


class OutreachAttemptsResponse(CamelModel):
    attempts: List[OutreachAttemptRecord]


class OutreachDeleteResponse(CamelModel):
    deleted: int
