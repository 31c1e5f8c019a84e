"""
Relational storage backend (SQLAlchemy).

Every repository works on the request's Session and commits through
``transaction()``, one commit per mutation. Rows are converted to the
shared record schemas before they leave this module.
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.errors import BackendError
from ..core.transactions import transaction
from ..models.audit_log import AuditLogEntry
from ..models.case_reopen_history import CaseReopenHistory
from ..models.client import Client, ClientStatus
from ..models.email_template import EmailTemplate, EmailTemplateType
from ..models.evaluation_criteria import EvaluationCriteria
from ..models.outreach_attempt import OutreachAttempt
from ..models.referral_clinic import ReferralClinic, ReferralClinicsConfig
from ..models.setting import Setting
from ..models.text_evaluation_rule import TextEvaluationRule
from ..schemas.audit import AuditLogCreate, AuditLogRecord
from ..schemas.client import CaseReopenHistoryRecord, ClientRecord
from ..schemas.email_template import EmailTemplateRecord
from ..schemas.evaluation_criteria import EvaluationCriteriaRecord
from ..schemas.outreach import OutreachAttemptRecord
from ..schemas.referral_clinic import (
    CustomFieldDefinition,
    ReferralClinicRecord,
    ReferralClinicsConfigRecord,
)
from ..schemas.text_evaluation import TextEvaluationRuleRecord
from ..utils.identifiers import new_id, utc_now
from .base import (
    CLOSED_STATUSES,
    FOLLOW_UP_STATUSES,
    Repositories,
    filter_follow_ups_due,
    merge_record,
    missing_attempts,
    new_record,
    order_by_priority,
    order_clinics,
    order_closed,
    order_newest_first,
    order_templates_for_type,
)


logger = logging.getLogger(__name__)

CONFIG_ROW_ID = 1


def _column_values(record: BaseModel) -> Dict[str, Any]:
    """Record attributes as column values (enums by value, nested models as JSON)."""
    values = {}
    for name in type(record).model_fields:
        value = getattr(record, name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        values[name] = value
    return values


class _SqlRepository:
    """CRUD shared by the entity repositories below."""

    model: Any = None
    record_cls: Any = None

    def __init__(self, db: Session):
        self.db = db

    def _record(self, row):
        return self.record_cls.model_validate(row)

    def _records(self, rows) -> list:
        return [self._record(row) for row in rows]

    def _all(self) -> list:
        return self._records(self.db.query(self.model).all())

    def get_by_id(self, record_id: str):
        row = self.db.get(self.model, record_id)
        return self._record(row) if row is not None else None

    def create(self, data: Dict[str, Any]):
        record = new_record(self.record_cls, data)
        with transaction(self.db):
            self.db.add(self.model(**_column_values(record)))
        return record

    def update(self, record_id: str, changes: Dict[str, Any]):
        row = self.db.get(self.model, record_id)
        if row is None:
            return None
        merged = merge_record(self._record(row), changes)
        with transaction(self.db):
            for name, value in _column_values(merged).items():
                setattr(row, name, value)
        return merged


class _SqlDeletableRepository(_SqlRepository):
    def delete(self, record_id: str) -> bool:
        row = self.db.get(self.model, record_id)
        if row is None:
            return False
        with transaction(self.db):
            self.db.delete(row)
        return True


# =============================================================================
# Clients
# =============================================================================

class SqlClientRepository(_SqlRepository):
    model = Client
    record_cls = ClientRecord

    def get_all(self) -> List[ClientRecord]:
        return order_newest_first(self._all())

    def get_by_status(self, status: ClientStatus) -> List[ClientRecord]:
        rows = self.db.query(Client).filter(Client.status == ClientStatus(status).value).all()
        return order_newest_first(self._records(rows))

    def get_follow_ups_due(self, today: date) -> List[ClientRecord]:
        rows = (
            self.db.query(Client)
            .filter(Client.status.in_([s.value for s in FOLLOW_UP_STATUSES]))
            .filter(Client.next_follow_up_due.isnot(None))
            .all()
        )
        return filter_follow_ups_due(self._records(rows), today)

    def get_closed(self, workflow: Optional[str] = None) -> List[ClientRecord]:
        query = self.db.query(Client).filter(Client.status.in_([s.value for s in CLOSED_STATUSES]))
        if workflow:
            query = query.filter(Client.closed_from_workflow == workflow)
        return order_closed(self._records(query.all()))


# =============================================================================
# Evaluation Criteria
# =============================================================================

class _SqlInsertionOrderedRepository(_SqlDeletableRepository):
    """Rows keep their insertion order through a ``sequence`` column."""

    def _ordered(self):
        return self.db.query(self.model).order_by(self.model.sequence)

    def _all(self) -> list:
        return self._records(self._ordered().all())

    def _active(self) -> list:
        return self._records(self._ordered().filter(self.model.is_active.is_(True)).all())

    def create(self, data: Dict[str, Any]):
        record = new_record(self.record_cls, data)
        with transaction(self.db):
            last = self.db.query(func.max(self.model.sequence)).scalar()
            self.db.add(self.model(**_column_values(record), sequence=(last or 0) + 1))
        return record


class SqlEvaluationCriteriaRepository(_SqlInsertionOrderedRepository):
    model = EvaluationCriteria
    record_cls = EvaluationCriteriaRecord

    def get_all(self) -> List[EvaluationCriteriaRecord]:
        return order_by_priority(self._all())

    def get_active(self) -> List[EvaluationCriteriaRecord]:
        return order_by_priority(self._active())


# =============================================================================
# Text Evaluation Rules
# =============================================================================

class SqlTextEvaluationRuleRepository(_SqlInsertionOrderedRepository):
    model = TextEvaluationRule
    record_cls = TextEvaluationRuleRecord

    def get_all(self) -> List[TextEvaluationRuleRecord]:
        return self._all()

    def get_active(self) -> List[TextEvaluationRuleRecord]:
        return self._active()


# =============================================================================
# Outreach Attempts
# =============================================================================

class SqlOutreachAttemptRepository(_SqlDeletableRepository):
    model = OutreachAttempt
    record_cls = OutreachAttemptRecord

    def get_by_client_id(self, client_id: str) -> List[OutreachAttemptRecord]:
        rows = (
            self.db.query(OutreachAttempt)
            .filter(OutreachAttempt.client_id == client_id)
            .order_by(OutreachAttempt.attempt_number)
            .all()
        )
        return self._records(rows)

    def initialize_for_client(self, client_id: str, count: int) -> List[OutreachAttemptRecord]:
        existing = [a.attempt_number for a in self.get_by_client_id(client_id)]
        for payload in missing_attempts(client_id, existing, count):
            try:
                self.create(payload)
            except BackendError as e:
                logger.error(
                    f"Could not create outreach attempt {payload['attempt_number']} "
                    f"for client {client_id}: {e}"
                )
        return self.get_by_client_id(client_id)

    def delete_by_client_id(self, client_id: str) -> int:
        rows = self.db.query(OutreachAttempt).filter(OutreachAttempt.client_id == client_id).all()
        with transaction(self.db):
            for row in rows:
                self.db.delete(row)
        return len(rows)


# =============================================================================
# Referral Clinics
# =============================================================================

class SqlReferralClinicRepository(_SqlDeletableRepository):
    model = ReferralClinic
    record_cls = ReferralClinicRecord

    def get_all(self) -> List[ReferralClinicRecord]:
        return order_clinics(self._all())

    def get_active(self) -> List[ReferralClinicRecord]:
        rows = self.db.query(ReferralClinic).filter(ReferralClinic.is_active.is_(True)).all()
        return order_clinics(self._records(rows))


class SqlReferralClinicsConfigRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_config(self) -> ReferralClinicsConfigRecord:
        row = self.db.get(ReferralClinicsConfig, CONFIG_ROW_ID)
        if row is None:
            return ReferralClinicsConfigRecord(custom_fields=[])
        return ReferralClinicsConfigRecord(custom_fields=row.custom_fields, updated_at=row.updated_at)

    def save_custom_fields(self, fields: List[CustomFieldDefinition]) -> ReferralClinicsConfigRecord:
        stored = [field.model_dump(mode="json") for field in fields]
        now = utc_now()
        with transaction(self.db):
            row = self.db.get(ReferralClinicsConfig, CONFIG_ROW_ID)
            if row is None:
                self.db.add(ReferralClinicsConfig(id=CONFIG_ROW_ID, custom_fields=stored, updated_at=now))
            else:
                row.custom_fields = stored
                row.updated_at = now
        return ReferralClinicsConfigRecord(custom_fields=fields, updated_at=now)


# =============================================================================
# Email Templates
# =============================================================================

class SqlEmailTemplateRepository(_SqlDeletableRepository):
    model = EmailTemplate
    record_cls = EmailTemplateRecord

    def get_all(self) -> List[EmailTemplateRecord]:
        return sorted(self._all(), key=lambda t: (t.type.value, t.created_at))

    def get_by_type(self, template_type: str) -> List[EmailTemplateRecord]:
        rows = (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.type == EmailTemplateType(template_type).value)
            .filter(EmailTemplate.is_active.is_(True))
            .all()
        )
        return order_templates_for_type(self._records(rows))

    def _clear_defaults(self, template_type: str, keep_id: Optional[str] = None) -> None:
        query = self.db.query(EmailTemplate).filter(
            EmailTemplate.type == template_type,
            EmailTemplate.is_default.is_(True),
        )
        for row in query.all():
            if row.id != keep_id:
                row.is_default = False
                row.updated_at = utc_now()

    def create(self, data: Dict[str, Any]) -> EmailTemplateRecord:
        record = new_record(EmailTemplateRecord, data)
        with transaction(self.db):
            if record.is_default:
                self._clear_defaults(record.type.value)
            self.db.add(EmailTemplate(**_column_values(record)))
        return record

    def set_default(self, template_id: str) -> Optional[EmailTemplateRecord]:
        row = self.db.get(EmailTemplate, template_id)
        if row is None:
            return None
        with transaction(self.db):
            self._clear_defaults(row.type, keep_id=row.id)
            row.is_default = True
            row.updated_at = utc_now()
        return self._record(row)


# =============================================================================
# Settings
# =============================================================================

class SqlSettingsRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> Dict[str, str]:
        return {row.key: row.value for row in self.db.query(Setting).order_by(Setting.key).all()}

    def get(self, key: str) -> Optional[str]:
        row = self.db.get(Setting, key)
        return row.value if row is not None else None

    def set(self, key: str, value: str, updated_by: Optional[str] = None) -> None:
        with transaction(self.db):
            row = self.db.get(Setting, key)
            if row is None:
                self.db.add(Setting(key=key, value=value, updated_at=utc_now(), updated_by=updated_by))
            else:
                row.value = value
                row.updated_at = utc_now()
                row.updated_by = updated_by

    def delete(self, key: str) -> bool:
        row = self.db.get(Setting, key)
        if row is None:
            return False
        with transaction(self.db):
            self.db.delete(row)
        return True


# =============================================================================
# Audit Log
# =============================================================================

class SqlAuditLogRepository:
    """Append-only; rows are inserted and read, nothing else."""

    def __init__(self, db: Session):
        self.db = db

    def log(self, entry: AuditLogCreate) -> AuditLogRecord:
        record = AuditLogRecord(**entry.model_dump(), id=new_id(), timestamp=utc_now())
        with transaction(self.db):
            self.db.add(AuditLogEntry(**_column_values(record)))
        return record

    def _query(self):
        return self.db.query(AuditLogEntry).order_by(AuditLogEntry.timestamp.desc())

    def get_all(self) -> List[AuditLogRecord]:
        return [AuditLogRecord.model_validate(row) for row in self._query().all()]

    def get_by_entity_id(self, entity_id: str) -> List[AuditLogRecord]:
        rows = self._query().filter(AuditLogEntry.entity_id == entity_id).all()
        return [AuditLogRecord.model_validate(row) for row in rows]

    def get_recent(self, limit: int = 50) -> List[AuditLogRecord]:
        return [AuditLogRecord.model_validate(row) for row in self._query().limit(limit).all()]


# =============================================================================
# Case Reopen History
# =============================================================================

class SqlCaseReopenHistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: Dict[str, Any]) -> CaseReopenHistoryRecord:
        record = CaseReopenHistoryRecord.model_validate(
            {"reopened_at": utc_now(), **data, "id": new_id()}
        )
        with transaction(self.db):
            self.db.add(CaseReopenHistory(**_column_values(record)))
        return record

    def get_by_client_id(self, client_id: str) -> List[CaseReopenHistoryRecord]:
        rows = (
            self.db.query(CaseReopenHistory)
            .filter(CaseReopenHistory.client_id == client_id)
            .order_by(CaseReopenHistory.reopened_at.desc())
            .all()
        )
        return [CaseReopenHistoryRecord.model_validate(row) for row in rows]


def database_repositories(db: Session) -> Repositories:
    """Bundle the relational repositories for one session."""
    return Repositories(
        backend="database",
        clients=SqlClientRepository(db),
        criteria=SqlEvaluationCriteriaRepository(db),
        text_rules=SqlTextEvaluationRuleRepository(db),
        outreach=SqlOutreachAttemptRepository(db),
        clinics=SqlReferralClinicRepository(db),
        clinics_config=SqlReferralClinicsConfigRepository(db),
        templates=SqlEmailTemplateRepository(db),
        settings=SqlSettingsRepository(db),
        audit_log=SqlAuditLogRepository(db),
        reopen_history=SqlCaseReopenHistoryRepository(db),
    )
