"""
Pydantic validation schemas for the Intake Desk.

Records are the shapes both storage backends return; request models
enforce data integrity at API boundaries. All of them speak camelCase
on the wire.
"""

from .client import (
    ClientRecord,
    ClientCreate,
    ClientUpdate,
    ClientUpdateResponse,
    CloseClientRequest,
    ReopenClientRequest,
    MarkDuplicateRequest,
    CaseReopenHistoryRecord,
    ClosedClientsResponse,
)
from .evaluation_criteria import (
    EvaluationCriteriaRecord,
    EvaluationCriteriaCreate,
    EvaluationCriteriaUpdate,
    EvaluationCriteriaBulkRequest,
    EvaluationCriteriaBulkResponse,
    EvaluationResult,
    CriteriaFlag,
)
from .outreach import OutreachAttemptRecord, OutreachAttemptCreate, OutreachAttemptUpdate
from .referral_clinic import (
    ReferralClinicRecord,
    ReferralClinicCreate,
    ReferralClinicUpdate,
    ReferralClinicsConfigRecord,
    CustomFieldDefinition,
)
from .email_template import EmailTemplateRecord, EmailTemplateCreate, EmailTemplateUpdate
from .text_evaluation import (
    TextEvaluationRuleRecord,
    TextEvaluationRuleCreate,
    TextEvaluationRuleUpdate,
    TextEvaluationFlag,
    TextEvaluationResult,
)
from .form_sync import FormSyncResult, FormSyncStatus
from .audit import AuditLogCreate, AuditLogRecord
from .common import HealthResponse, ErrorResponse, DeleteResponse

__all__ = [
    # Client schemas
    "ClientRecord",
    "ClientCreate",
    "ClientUpdate",
    "ClientUpdateResponse",
    "CloseClientRequest",
    "ReopenClientRequest",
    "MarkDuplicateRequest",
    "CaseReopenHistoryRecord",
    "ClosedClientsResponse",
    # Criteria schemas
    "EvaluationCriteriaRecord",
    "EvaluationCriteriaCreate",
    "EvaluationCriteriaUpdate",
    "EvaluationCriteriaBulkRequest",
    "EvaluationCriteriaBulkResponse",
    "EvaluationResult",
    "CriteriaFlag",
    # Outreach
    "OutreachAttemptRecord",
    "OutreachAttemptCreate",
    "OutreachAttemptUpdate",
    # Referral clinics
    "ReferralClinicRecord",
    "ReferralClinicCreate",
    "ReferralClinicUpdate",
    "ReferralClinicsConfigRecord",
    "CustomFieldDefinition",
    # Templates
    "EmailTemplateRecord",
    "EmailTemplateCreate",
    "EmailTemplateUpdate",
    # Text evaluation
    "TextEvaluationRuleRecord",
    "TextEvaluationRuleCreate",
    "TextEvaluationRuleUpdate",
    "TextEvaluationFlag",
    "TextEvaluationResult",
    # Form sync
    "FormSyncResult",
    "FormSyncStatus",
    # Audit
    "AuditLogCreate",
    "AuditLogRecord",
    # Common schemas
    "HealthResponse",
    "ErrorResponse",
    "DeleteResponse",
]
