"""
Repository contracts shared by both storage backends.

Each entity has one Protocol. ``database_repositories`` (SQLAlchemy) and
``sheets_repositories`` (Google Sheets) build independent implementations;
callers only ever see these contracts and the record schemas.

Contract rules:
- ``create`` assigns a fresh id and creation timestamp
- ``update`` merges only the supplied fields and returns None for unknown ids
- ``delete`` returns whether something was removed
- list orders documented here hold on both backends
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ValidationFailed
from ..models.client import ClientStatus
from ..models.outreach_attempt import OutreachAttemptStatus, OutreachAttemptType
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
from ..utils.identifiers import ensure_utc, new_id, utc_now


RecordT = TypeVar("RecordT", bound=BaseModel)

CLOSED_STATUSES = (
    ClientStatus.CLOSED_NO_CONTACT,
    ClientStatus.CLOSED_OTHER,
    ClientStatus.DUPLICATE,
)

FOLLOW_UP_STATUSES = (
    ClientStatus.OUTREACH_SENT,
    ClientStatus.FOLLOW_UP_1,
    ClientStatus.FOLLOW_UP_2,
)

IMMUTABLE_FIELDS = {"id", "created_at"}


# =============================================================================
# Record Helpers
# =============================================================================

def blanks_to_none(record_cls: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Store empty strings in optional fields as None.

    A spreadsheet cannot tell an empty cell from a missing value, so both
    backends keep optional text the same way.
    """
    fields = record_cls.model_fields
    return {
        name: None if value == "" and name in fields and fields[name].default is None else value
        for name, value in data.items()
    }


def new_record(record_cls: Type[RecordT], data: Dict[str, Any]) -> RecordT:
    """Build a record for ``create``: fresh id, creation and update stamps."""
    now = utc_now()
    payload = {**blanks_to_none(record_cls, data), "id": new_id(), "created_at": now, "updated_at": now}
    try:
        return record_cls.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid {record_cls.__name__}: {e.errors()[0]['msg']}") from e


def merge_record(record: RecordT, changes: Dict[str, Any], touch: bool = True) -> RecordT:
    """
    Partial merge of ``changes`` into ``record``.

    Raises:
        ValidationFailed: for unknown or immutable fields, or invalid values
    """
    fields = type(record).model_fields
    for name in changes:
        if name not in fields or name in IMMUTABLE_FIELDS:
            raise ValidationFailed(f"Field '{name}' cannot be updated", field=name)

    payload = {**record.model_dump(), **blanks_to_none(type(record), changes)}
    if touch and "updated_at" in fields:
        payload["updated_at"] = utc_now()
    try:
        return type(record).model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid update: {e.errors()[0]['msg']}") from e


# =============================================================================
# Orderings shared by both backends
# =============================================================================

def order_by_priority(criteria: Iterable[EvaluationCriteriaRecord]) -> List[EvaluationCriteriaRecord]:
    """
    Ascending priority; ties keep the input order.

    Both backends hand criteria over in insertion order: sheet row order,
    or the ``sequence`` column of the relational table.
    """
    return sorted(criteria, key=lambda c: c.priority)


def order_newest_first(clients: Iterable[ClientRecord]) -> List[ClientRecord]:
    return sorted(clients, key=lambda c: c.created_at, reverse=True)


def order_closed(clients: Iterable[ClientRecord]) -> List[ClientRecord]:
    """Most recently closed first; records without a closed date last."""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    by_creation = sorted(clients, key=lambda c: c.created_at)
    return sorted(by_creation, key=lambda c: c.closed_date or floor, reverse=True)


def filter_follow_ups_due(clients: Iterable[ClientRecord], today: date) -> List[ClientRecord]:
    """Clients in a follow-up stage whose next follow-up is due by end of ``today``."""
    cutoff = datetime.combine(today, time.max, tzinfo=timezone.utc)
    due = [
        c for c in clients
        if c.status in FOLLOW_UP_STATUSES
        and c.next_follow_up_due is not None
        and ensure_utc(c.next_follow_up_due) <= cutoff
    ]
    return sorted(due, key=lambda c: c.next_follow_up_due)


def missing_attempts(client_id: str, existing: Iterable[int], count: int) -> List[Dict[str, Any]]:
    """
    Create-payloads for the attempt numbers 1..count a client lacks.

    Attempt 1 is the initial outreach; every later one is a follow-up.
    """
    taken = set(existing)
    return [
        {
            "client_id": client_id,
            "attempt_number": number,
            "attempt_type": (
                OutreachAttemptType.INITIAL_OUTREACH if number == 1 else OutreachAttemptType.FOLLOW_UP
            ),
            "status": OutreachAttemptStatus.PENDING,
        }
        for number in range(1, count + 1)
        if number not in taken
    ]


def order_clinics(clinics: Iterable[ReferralClinicRecord]) -> List[ReferralClinicRecord]:
    return sorted(clinics, key=lambda c: c.practice_name.casefold())


def order_templates_for_type(templates: Iterable[EmailTemplateRecord]) -> List[EmailTemplateRecord]:
    """Default template first, then creation order."""
    by_creation = sorted(templates, key=lambda t: t.created_at)
    return sorted(by_creation, key=lambda t: not t.is_default)


# =============================================================================
# Repository Protocols
# =============================================================================

class ClientRepository(Protocol):
    """Clients are never deleted; closure is a status change."""

    def get_all(self) -> List[ClientRecord]: ...
    def get_by_id(self, client_id: str) -> Optional[ClientRecord]: ...
    def get_by_status(self, status: ClientStatus) -> List[ClientRecord]: ...
    def get_follow_ups_due(self, today: date) -> List[ClientRecord]: ...
    def get_closed(self, workflow: Optional[str] = None) -> List[ClientRecord]: ...
    def create(self, data: Dict[str, Any]) -> ClientRecord: ...
    def update(self, client_id: str, changes: Dict[str, Any]) -> Optional[ClientRecord]: ...


class EvaluationCriteriaRepository(Protocol):
    def get_all(self) -> List[EvaluationCriteriaRecord]: ...
    def get_active(self) -> List[EvaluationCriteriaRecord]: ...
    def get_by_id(self, criteria_id: str) -> Optional[EvaluationCriteriaRecord]: ...
    def create(self, data: Dict[str, Any]) -> EvaluationCriteriaRecord: ...
    def update(self, criteria_id: str, changes: Dict[str, Any]) -> Optional[EvaluationCriteriaRecord]: ...
    def delete(self, criteria_id: str) -> bool: ...


class OutreachAttemptRepository(Protocol):
    def get_by_client_id(self, client_id: str) -> List[OutreachAttemptRecord]: ...
    def get_by_id(self, attempt_id: str) -> Optional[OutreachAttemptRecord]: ...
    def create(self, data: Dict[str, Any]) -> OutreachAttemptRecord: ...
    def update(self, attempt_id: str, changes: Dict[str, Any]) -> Optional[OutreachAttemptRecord]: ...
    def delete(self, attempt_id: str) -> bool: ...
    def initialize_for_client(self, client_id: str, count: int) -> List[OutreachAttemptRecord]: ...
    def delete_by_client_id(self, client_id: str) -> int: ...


class TextEvaluationRuleRepository(Protocol):
    def get_all(self) -> List[TextEvaluationRuleRecord]: ...
    def get_active(self) -> List[TextEvaluationRuleRecord]: ...
    def get_by_id(self, rule_id: str) -> Optional[TextEvaluationRuleRecord]: ...
    def create(self, data: Dict[str, Any]) -> TextEvaluationRuleRecord: ...
    def update(self, rule_id: str, changes: Dict[str, Any]) -> Optional[TextEvaluationRuleRecord]: ...
    def delete(self, rule_id: str) -> bool: ...


class ReferralClinicRepository(Protocol):
    def get_all(self) -> List[ReferralClinicRecord]: ...
    def get_active(self) -> List[ReferralClinicRecord]: ...
    def get_by_id(self, clinic_id: str) -> Optional[ReferralClinicRecord]: ...
    def create(self, data: Dict[str, Any]) -> ReferralClinicRecord: ...
    def update(self, clinic_id: str, changes: Dict[str, Any]) -> Optional[ReferralClinicRecord]: ...
    def delete(self, clinic_id: str) -> bool: ...


class ReferralClinicsConfigRepository(Protocol):
    def get_config(self) -> ReferralClinicsConfigRecord: ...
    def save_custom_fields(self, fields: List[CustomFieldDefinition]) -> ReferralClinicsConfigRecord: ...


class EmailTemplateRepository(Protocol):
    def get_all(self) -> List[EmailTemplateRecord]: ...
    def get_by_id(self, template_id: str) -> Optional[EmailTemplateRecord]: ...
    def get_by_type(self, template_type: str) -> List[EmailTemplateRecord]: ...
    def create(self, data: Dict[str, Any]) -> EmailTemplateRecord: ...
    def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[EmailTemplateRecord]: ...
    def delete(self, template_id: str) -> bool: ...
    def set_default(self, template_id: str) -> Optional[EmailTemplateRecord]: ...


class SettingsRepository(Protocol):
    def get_all(self) -> Dict[str, str]: ...
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str, updated_by: Optional[str] = None) -> None: ...
    def delete(self, key: str) -> bool: ...


class AuditLogRepository(Protocol):
    """Append-only: there is no update or delete."""

    def log(self, entry: AuditLogCreate) -> AuditLogRecord: ...
    def get_all(self) -> List[AuditLogRecord]: ...
    def get_by_entity_id(self, entity_id: str) -> List[AuditLogRecord]: ...
    def get_recent(self, limit: int = 50) -> List[AuditLogRecord]: ...


class CaseReopenHistoryRepository(Protocol):
    def create(self, data: Dict[str, Any]) -> CaseReopenHistoryRecord: ...
    def get_by_client_id(self, client_id: str) -> List[CaseReopenHistoryRecord]: ...


@dataclass
class Repositories:
    """Every repository of one backend, handed to routes as a unit."""

    backend: str
    clients: ClientRepository
    criteria: EvaluationCriteriaRepository
    text_rules: TextEvaluationRuleRepository
    outreach: OutreachAttemptRepository
    clinics: ReferralClinicRepository
    clinics_config: ReferralClinicsConfigRepository
    templates: EmailTemplateRepository
    settings: SettingsRepository
    audit_log: AuditLogRepository
    reopen_history: CaseReopenHistoryRepository
