"""
Google Form intake sync.

The intake form writes one row per submission to its responses tab, with
the submission timestamp in column A. Headers are matched to client
fields by case-insensitive substring, first pattern wins, so rewording a
question does not break the sync. The timestamp identifies a response:
a row whose timestamp already belongs to a client is not imported again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set

from pydantic import ValidationError

from ..models.audit_log import AuditEntityType
from ..models.client import ClientSource, ClientStatus
from ..repositories import Repositories
from ..schemas.client import ClientCreate, ClientRecord
from ..schemas.form_sync import FormSyncResult, FormSyncStatus
from ..utils.identifiers import utc_now
from .audit import AuditService


logger = logging.getLogger(__name__)

FORM_FIELD_PATTERNS = (
    (("timestamp",), "form_timestamp"),
    (("first name", "firstname", "first"), "first_name"),
    (("last name", "lastname", "last"), "last_name"),
    (("email", "e-mail"), "email"),
    (("phone", "telephone", "mobile"), "phone"),
    (("age",), "age"),
    (("payment", "payment type", "pay"), "payment_type"),
    (("preferred therapist", "therapist", "clinician"), "requested_clinician"),
    (("address in therapy", "presenting", "concerns", "what would you like"), "presenting_concerns"),
    (("suicide", "attempted suicide"), "suicide_attempt_recent"),
    (("hospitalized", "psychiatric", "hospital"), "psychiatric_hospitalization"),
    (("else", "additional", "share", "other"), "additional_info"),
)

TIMESTAMP_FORMATS = ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y %H:%M", "%m/%d/%Y")
REQUIRED_FIELDS = ("first_name", "last_name", "email")


def match_header_to_field(header: str) -> Optional[str]:
    """Client field a form question maps to, or None."""
    lowered = header.lower().strip()
    for patterns, client_field in FORM_FIELD_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return client_field
    return None


def header_mapping(header: Sequence[str]) -> Dict[int, str]:
    """Column index to client field; a field already mapped keeps its first column."""
    mapping: Dict[int, str] = {}
    for index, title in enumerate(header):
        client_field = match_header_to_field(title)
        if client_field and client_field not in mapping.values():
            mapping[index] = client_field
    return mapping


def parse_form_timestamp(value: str) -> Optional[datetime]:
    """
    Parse a form timestamp (``1/15/2025 10:30:45`` or ISO 8601) as UTC.

    Naive values are taken to be UTC. Returns None when unparseable.
    """
    text = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _synced_timestamps(clients: Iterable[ClientRecord]) -> Set[datetime]:
    return {c.form_timestamp for c in clients if c.form_timestamp is not None}


# =============================================================================
# Responses Tab
# =============================================================================

@dataclass
class FormResponse:
    row_number: int
    raw_timestamp: str
    values: Dict[str, str] = field(default_factory=dict)

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_form_timestamp(self.raw_timestamp) if self.raw_timestamp else None


def parse_responses(rows: Sequence[Sequence[str]]) -> List[FormResponse]:
    """Data rows of the responses tab; row 1 is the question header."""
    if len(rows) < 2:
        return []
    mapping = header_mapping(rows[0])
    responses = []
    for offset, row in enumerate(rows[1:]):
        values = {}
        for index, client_field in mapping.items():
            cell = row[index].strip() if index < len(row) else ""
            if cell and client_field != "form_timestamp":
                values[client_field] = cell
        raw_timestamp = row[0].strip() if row else ""
        responses.append(FormResponse(row_number=offset + 2, raw_timestamp=raw_timestamp, values=values))
    return responses


def sync_status(rows: Sequence[Sequence[str]], clients: Sequence[ClientRecord]) -> FormSyncStatus:
    responses = parse_responses(rows)
    synced = _synced_timestamps(clients)
    timestamps = [r.timestamp for r in responses if r.timestamp is not None]
    already = sum(1 for ts in timestamps if ts in synced)
    return FormSyncStatus(
        form_responses_count=len(responses),
        clients_count=len(clients),
        synced_count=already,
        pending_sync=len(timestamps) - already,
        last_sync_check=utc_now(),
    )


def sync_form_responses(
    rows: Sequence[Sequence[str]],
    repos: Repositories,
    audit: AuditService,
) -> FormSyncResult:
    """
    Create a client for every response not yet imported.

    Rows without a usable timestamp, or missing a name or email, are
    reported in ``errors`` and skipped; the rest of the tab still syncs.
    """
    result = FormSyncResult()
    synced = _synced_timestamps(repos.clients.get_all())

    for response in parse_responses(rows):
        label = f"Row {response.row_number}"
        if not response.raw_timestamp:
            result.errors.append(f"{label}: Missing timestamp")
            continue
        timestamp = response.timestamp
        if timestamp is None:
            result.errors.append(f"{label}: Unrecognised timestamp '{response.raw_timestamp}'")
            continue
        if timestamp in synced:
            result.duplicates += 1
            continue

        missing = [name for name in REQUIRED_FIELDS if not response.values.get(name)]
        if missing:
            result.errors.append(f"{label}: Missing required fields ({', '.join(missing)})")
            continue

        try:
            payload = ClientCreate(
                **response.values,
                source=ClientSource.GOOGLE_FORM,
                form_response_id=f"row-{response.row_number}",
                form_timestamp=timestamp,
            )
        except ValidationError as e:
            error = e.errors()[0]
            location = ".".join(str(part) for part in error["loc"]) or "row"
            result.errors.append(f"{label}: Invalid {location}: {error['msg']}")
            continue

        client = repos.clients.create({**payload.model_dump(), "status": ClientStatus.NEW})
        audit.log_create(AuditEntityType.CLIENT, client.id, client)
        synced.add(timestamp)
        result.new_clients += 1
        result.synced_ids.append(client.id)

    if result.errors:
        logger.warning(f"Form sync skipped {len(result.errors)} row(s): {'; '.join(result.errors)}")
    if result.new_clients:
        plural = "" if result.new_clients == 1 else "s"
        result.message = f"Synced {result.new_clients} new client{plural}"
    else:
        result.message = "All form responses already synced"
    logger.info(
        f"Form sync: {result.new_clients} created, {result.duplicates} duplicate(s), "
        f"{len(result.errors)} error(s)"
    )
    return result
