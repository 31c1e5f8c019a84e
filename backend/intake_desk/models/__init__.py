"""
SQLAlchemy ORM models for the Intake Desk.

Used only by the relational storage backend; the spreadsheet backend
shares the enums but none of the tables.
"""

from .client import Client, ClientStatus, ClientSource, ClosedFromWorkflow
from .evaluation_criteria import EvaluationCriteria, CriteriaOperator, CriteriaAction
from .text_evaluation_rule import TextEvaluationRule, TextEvaluationCategory, TextEvaluationSeverity
from .outreach_attempt import OutreachAttempt, OutreachAttemptType, OutreachAttemptStatus
from .referral_clinic import ReferralClinic, ReferralClinicsConfig, CustomFieldType
from .email_template import EmailTemplate, EmailTemplateType
from .setting import Setting
from .audit_log import AuditLogEntry, AuditAction, AuditEntityType
from .case_reopen_history import CaseReopenHistory

__all__ = [
    # Client model and enums
    "Client",
    "ClientStatus",
    "ClientSource",
    "ClosedFromWorkflow",
    # Criteria model and enums
    "EvaluationCriteria",
    "CriteriaOperator",
    "CriteriaAction",
    # Text evaluation
    "TextEvaluationRule",
    "TextEvaluationCategory",
    "TextEvaluationSeverity",
    # Outreach
    "OutreachAttempt",
    "OutreachAttemptType",
    "OutreachAttemptStatus",
    # Referral clinics
    "ReferralClinic",
    "ReferralClinicsConfig",
    "CustomFieldType",
    # Templates and settings
    "EmailTemplate",
    "EmailTemplateType",
    "Setting",
    # Audit
    "AuditLogEntry",
    "AuditAction",
    "AuditEntityType",
    "CaseReopenHistory",
]
