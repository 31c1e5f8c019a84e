"""
Spreadsheet storage backend (Google Sheets).

Each entity lives in its own tab. Row 1 holds the camelCase column names;
every later row is one record. Rows whose key cell is empty (for example
cleared by a delete) are skipped, as are rows that fail validation; those
are logged and left in place. Reads on a missing tab return nothing;
writes on a missing tab raise BackendError.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type

from pydantic import Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.errors import BackendError, SheetNotFoundError
from ..models.client import ClientStatus
from ..models.email_template import EmailTemplateType
from ..schemas.audit import AuditLogCreate, AuditLogRecord
from ..schemas.base import CamelModel, UtcDatetime
from ..schemas.client import CaseReopenHistoryRecord, ClientRecord
from ..schemas.email_template import EmailTemplateRecord
from ..schemas.evaluation_criteria import EvaluationCriteriaRecord
from ..schemas.outreach import OutreachAttemptRecord
from ..schemas.referral_clinic import (
    CustomFieldDefinition,
    ReferralClinicRecord,
    ReferralClinicsConfigRecord,
)
from ..schemas.settings import SettingRecord
from ..schemas.text_evaluation import TextEvaluationRuleRecord
from ..utils.identifiers import new_id, utc_now
from .base import (
    CLOSED_STATUSES,
    RecordT,
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
from .sheets_client import SheetsClient


logger = logging.getLogger(__name__)


# Tab names
CLIENTS_SHEET = "Clients"
CRITERIA_SHEET = "EvaluationCriteria"
TEXT_RULES_SHEET = "TextEvaluationRules"
OUTREACH_SHEET = "OutreachAttempts"
CLINICS_SHEET = "ReferralClinics"
CLINICS_CONFIG_SHEET = "ReferralClinicsConfig"
TEMPLATES_SHEET = "EmailTemplates"
SETTINGS_SHEET = "Settings"
AUDIT_SHEET = "AuditLog"
REOPEN_HISTORY_SHEET = "CaseReopenHistory"

CONFIG_ROW_ID = "config"


# =============================================================================
# Cell Conversion
# =============================================================================

def _to_cell(value: Any) -> str:
    """Serialise one JSON-mode value to a sheet cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


class SheetTable(Generic[RecordT]):
    """
    One tab mapped onto one record schema.

    Columns are matched by header name, so the column order in the sheet
    does not matter and unknown columns are preserved on update.
    """

    def __init__(
        self,
        client: SheetsClient,
        name: str,
        record_cls: Type[RecordT],
        key_field: str = "id",
        json_fields: Sequence[str] = (),
    ):
        self.client = client
        self.name = name
        self.record_cls = record_cls
        self.key_field = key_field
        self.key_column = to_camel(key_field)
        self.columns = [to_camel(field) for field in record_cls.model_fields]
        self.required_columns = {
            to_camel(name) for name, info in record_cls.model_fields.items() if info.is_required()
        }
        self.json_columns = {to_camel(field) for field in json_fields}

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _parse(self, header: List[str], row: List[str], row_number: int) -> Optional[RecordT]:
        data: Dict[str, Any] = {}
        for column, cell in zip(header, row):
            if column not in self.columns or (cell == "" and column not in self.required_columns):
                continue
            if column in self.json_columns:
                try:
                    data[column] = json.loads(cell)
                except ValueError:
                    logger.warning(f"Skipping row {row_number} in sheet '{self.name}': {column} is not valid JSON")
                    return None
            else:
                data[column] = cell
        if not data.get(self.key_column):
            return None
        try:
            return self.record_cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping malformed row {row_number} in sheet '{self.name}': {e}")
            return None

    def load(self) -> Tuple[List[str], List[Tuple[int, RecordT]]]:
        rows = self.client.read_rows(self.name)
        if not rows:
            return [], []
        header = rows[0]
        entries = []
        for offset, row in enumerate(rows[1:]):
            row_number = offset + 2
            record = self._parse(header, row, row_number)
            if record is not None:
                entries.append((row_number, record))
        return header, entries

    def records(self) -> List[RecordT]:
        """Every record, in sheet order. A missing tab reads as empty."""
        try:
            _, entries = self.load()
        except SheetNotFoundError:
            logger.warning(f"Sheet '{self.name}' not found; treating as empty")
            return []
        return [record for _, record in entries]

    def find(self, key: str, for_write: bool = False) -> Optional[Tuple[int, RecordT]]:
        try:
            _, entries = self.load()
        except SheetNotFoundError:
            if for_write:
                raise
            return None
        for row_number, record in entries:
            if getattr(record, self.key_field) == key:
                return row_number, record
        return None

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _header_for_write(self) -> List[str]:
        rows = self.client.read_rows(self.name)
        if rows and rows[0]:
            return rows[0]
        self.client.append_rows(self.name, [self.columns])
        return self.columns

    def _to_row(self, record: RecordT, header: List[str], existing: Optional[List[str]] = None) -> List[str]:
        values = record.model_dump(mode="json", by_alias=True)
        existing = existing or []
        row = []
        for index, column in enumerate(header):
            if column in values:
                row.append(_to_cell(values[column]))
            else:
                row.append(existing[index] if index < len(existing) else "")
        return row

    def append(self, record: RecordT) -> None:
        header = self._header_for_write()
        self.client.append_rows(self.name, [self._to_row(record, header)])

    def write(self, row_number: int, record: RecordT) -> None:
        rows = self.client.read_rows(self.name)
        header = rows[0]
        existing = rows[row_number - 1] if row_number - 1 < len(rows) else []
        self.client.update_row(self.name, row_number, self._to_row(record, header, existing))

    def clear(self, row_number: int) -> None:
        self.client.clear_row(self.name, row_number)


# =============================================================================
# Shared CRUD
# =============================================================================

class _SheetRepository:
    sheet_name: str = ""
    record_cls: Any = None
    json_fields: Sequence[str] = ()

    def __init__(self, client: SheetsClient):
        self.table = SheetTable(client, self.sheet_name, self.record_cls, json_fields=self.json_fields)

    def get_by_id(self, record_id: str):
        found = self.table.find(record_id)
        return found[1] if found else None

    def create(self, data: Dict[str, Any]):
        record = new_record(self.record_cls, data)
        self.table.append(record)
        return record

    def update(self, record_id: str, changes: Dict[str, Any]):
        found = self.table.find(record_id, for_write=True)
        if found is None:
            return None
        row_number, current = found
        merged = merge_record(current, changes)
        self.table.write(row_number, merged)
        return merged


class _SheetDeletableRepository(_SheetRepository):
    def delete(self, record_id: str) -> bool:
        found = self.table.find(record_id, for_write=True)
        if found is None:
            return False
        self.table.clear(found[0])
        return True


# =============================================================================
# Clients
# =============================================================================

class SheetsClientRepository(_SheetRepository):
    sheet_name = CLIENTS_SHEET
    record_cls = ClientRecord
    json_fields = ("preferred_times", "text_evaluation_result")

    def get_all(self) -> List[ClientRecord]:
        return order_newest_first(self.table.records())

    def get_by_status(self, status: ClientStatus) -> List[ClientRecord]:
        wanted = ClientStatus(status)
        return order_newest_first(c for c in self.table.records() if c.status == wanted)

    def get_follow_ups_due(self, today: date) -> List[ClientRecord]:
        return filter_follow_ups_due(self.table.records(), today)

    def get_closed(self, workflow: Optional[str] = None) -> List[ClientRecord]:
        closed = [
            c for c in self.table.records()
            if c.status in CLOSED_STATUSES
            and (not workflow or (c.closed_from_workflow and c.closed_from_workflow.value == workflow))
        ]
        return order_closed(closed)


# =============================================================================
# Evaluation Criteria
# =============================================================================

class SheetsEvaluationCriteriaRepository(_SheetDeletableRepository):
    sheet_name = CRITERIA_SHEET
    record_cls = EvaluationCriteriaRecord

    def get_all(self) -> List[EvaluationCriteriaRecord]:
        return order_by_priority(self.table.records())

    def get_active(self) -> List[EvaluationCriteriaRecord]:
        return order_by_priority(c for c in self.table.records() if c.is_active)


# =============================================================================
# Text Evaluation Rules
# =============================================================================

class SheetsTextEvaluationRuleRepository(_SheetDeletableRepository):
    sheet_name = TEXT_RULES_SHEET
    record_cls = TextEvaluationRuleRecord
    json_fields = ("patterns", "negation_words")

    def get_all(self) -> List[TextEvaluationRuleRecord]:
        return self.table.records()

    def get_active(self) -> List[TextEvaluationRuleRecord]:
        return [r for r in self.table.records() if r.is_active]


# =============================================================================
# Outreach Attempts
# =============================================================================

class SheetsOutreachAttemptRepository(_SheetDeletableRepository):
    sheet_name = OUTREACH_SHEET
    record_cls = OutreachAttemptRecord

    def get_by_client_id(self, client_id: str) -> List[OutreachAttemptRecord]:
        attempts = [a for a in self.table.records() if a.client_id == client_id]
        return sorted(attempts, key=lambda a: a.attempt_number)

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
        try:
            _, entries = self.table.load()
        except SheetNotFoundError:
            return 0
        doomed = [row_number for row_number, a in entries if a.client_id == client_id]
        for row_number in doomed:
            self.table.clear(row_number)
        return len(doomed)


# =============================================================================
# Referral Clinics
# =============================================================================

class SheetsReferralClinicRepository(_SheetDeletableRepository):
    sheet_name = CLINICS_SHEET
    record_cls = ReferralClinicRecord
    json_fields = ("specialties", "custom_fields")

    def get_all(self) -> List[ReferralClinicRecord]:
        return order_clinics(self.table.records())

    def get_active(self) -> List[ReferralClinicRecord]:
        return order_clinics(c for c in self.table.records() if c.is_active)


class _ConfigRow(CamelModel):
    id: str
    custom_fields: List[CustomFieldDefinition] = Field(default_factory=list)
    updated_at: Optional[UtcDatetime] = None


class SheetsReferralClinicsConfigRepository:
    def __init__(self, client: SheetsClient):
        self.table = SheetTable(client, CLINICS_CONFIG_SHEET, _ConfigRow, json_fields=("custom_fields",))

    def get_config(self) -> ReferralClinicsConfigRecord:
        found = self.table.find(CONFIG_ROW_ID)
        if found is None:
            return ReferralClinicsConfigRecord(custom_fields=[])
        row = found[1]
        return ReferralClinicsConfigRecord(custom_fields=row.custom_fields, updated_at=row.updated_at)

    def save_custom_fields(self, fields: List[CustomFieldDefinition]) -> ReferralClinicsConfigRecord:
        row = _ConfigRow(id=CONFIG_ROW_ID, custom_fields=fields, updated_at=utc_now())
        found = self.table.find(CONFIG_ROW_ID, for_write=True)
        if found is None:
            self.table.append(row)
        else:
            self.table.write(found[0], row)
        return ReferralClinicsConfigRecord(custom_fields=row.custom_fields, updated_at=row.updated_at)


# =============================================================================
# Email Templates
# =============================================================================

class SheetsEmailTemplateRepository(_SheetDeletableRepository):
    sheet_name = TEMPLATES_SHEET
    record_cls = EmailTemplateRecord

    def get_all(self) -> List[EmailTemplateRecord]:
        return sorted(self.table.records(), key=lambda t: (t.type.value, t.created_at))

    def get_by_type(self, template_type: str) -> List[EmailTemplateRecord]:
        wanted = EmailTemplateType(template_type)
        return order_templates_for_type(
            t for t in self.table.records() if t.type == wanted and t.is_active
        )

    def _clear_defaults(self, template_type: EmailTemplateType, keep_id: Optional[str] = None) -> None:
        _, entries = self.table.load()
        for row_number, template in entries:
            if template.type == template_type and template.is_default and template.id != keep_id:
                self.table.write(row_number, merge_record(template, {"is_default": False}))

    def create(self, data: Dict[str, Any]) -> EmailTemplateRecord:
        record = new_record(EmailTemplateRecord, data)
        if record.is_default:
            self._clear_defaults(record.type)
        self.table.append(record)
        return record

    def set_default(self, template_id: str) -> Optional[EmailTemplateRecord]:
        found = self.table.find(template_id, for_write=True)
        if found is None:
            return None
        row_number, template = found
        self._clear_defaults(template.type, keep_id=template.id)
        updated = merge_record(template, {"is_default": True})
        self.table.write(row_number, updated)
        return updated


# =============================================================================
# Settings
# =============================================================================

class SheetsSettingsRepository:
    def __init__(self, client: SheetsClient):
        self.table = SheetTable(client, SETTINGS_SHEET, SettingRecord, key_field="key")

    def get_all(self) -> Dict[str, str]:
        return {s.key: s.value for s in sorted(self.table.records(), key=lambda s: s.key)}

    def get(self, key: str) -> Optional[str]:
        found = self.table.find(key)
        return found[1].value if found else None

    def set(self, key: str, value: str, updated_by: Optional[str] = None) -> None:
        record = SettingRecord(key=key, value=value, updated_at=utc_now(), updated_by=updated_by)
        found = self.table.find(key, for_write=True)
        if found is None:
            self.table.append(record)
        else:
            self.table.write(found[0], record)

    def delete(self, key: str) -> bool:
        found = self.table.find(key, for_write=True)
        if found is None:
            return False
        self.table.clear(found[0])
        return True


# =============================================================================
# Audit Log
# =============================================================================

class SheetsAuditLogRepository:
    """Append-only; rows are appended and read, nothing else."""

    def __init__(self, client: SheetsClient):
        self.table = SheetTable(client, AUDIT_SHEET, AuditLogRecord)

    def log(self, entry: AuditLogCreate) -> AuditLogRecord:
        record = AuditLogRecord(**entry.model_dump(), id=new_id(), timestamp=utc_now())
        self.table.append(record)
        return record

    def get_all(self) -> List[AuditLogRecord]:
        return sorted(reversed(self.table.records()), key=lambda e: e.timestamp, reverse=True)

    def get_by_entity_id(self, entity_id: str) -> List[AuditLogRecord]:
        return [e for e in self.get_all() if e.entity_id == entity_id]

    def get_recent(self, limit: int = 50) -> List[AuditLogRecord]:
        return self.get_all()[:limit]


# =============================================================================
# Case Reopen History
# =============================================================================

class SheetsCaseReopenHistoryRepository:
    def __init__(self, client: SheetsClient):
        self.table = SheetTable(client, REOPEN_HISTORY_SHEET, CaseReopenHistoryRecord)

    def create(self, data: Dict[str, Any]) -> CaseReopenHistoryRecord:
        record = CaseReopenHistoryRecord.model_validate(
            {"reopened_at": utc_now(), **data, "id": new_id()}
        )
        self.table.append(record)
        return record

    def get_by_client_id(self, client_id: str) -> List[CaseReopenHistoryRecord]:
        history = [h for h in self.table.records() if h.client_id == client_id]
        return sorted(history, key=lambda h: h.reopened_at, reverse=True)


def sheets_repositories(client: SheetsClient) -> Repositories:
    """Bundle the spreadsheet repositories for one client."""
    return Repositories(
        backend="sheets",
        clients=SheetsClientRepository(client),
        criteria=SheetsEvaluationCriteriaRepository(client),
        text_rules=SheetsTextEvaluationRuleRepository(client),
        outreach=SheetsOutreachAttemptRepository(client),
        clinics=SheetsReferralClinicRepository(client),
        clinics_config=SheetsReferralClinicsConfigRepository(client),
        templates=SheetsEmailTemplateRepository(client),
        settings=SheetsSettingsRepository(client),
        audit_log=SheetsAuditLogRepository(client),
        reopen_history=SheetsCaseReopenHistoryRepository(client),
    )
