"""
Client workflow rules.

Status moves forward through evaluation, outreach and scheduling. Referral
is an exit available from any open stage. Closing, marking a duplicate and
reopening are separate actions; this module builds the field changes for
each and rejects transitions the workflow does not allow.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ..core.errors import ValidationFailed
from ..models.client import ClientStatus, ClosedFromWorkflow
from ..repositories.base import CLOSED_STATUSES
from ..schemas.client import ClientRecord
from ..utils.identifiers import utc_now


# Forward order of the open stages; equal ranks are interchangeable.
STATUS_RANK = {
    ClientStatus.NEW: 0,
    ClientStatus.PENDING_EVALUATION: 1,
    ClientStatus.EVALUATION_COMPLETE: 2,
    ClientStatus.EVALUATION_FLAGGED: 2,
    ClientStatus.PENDING_OUTREACH: 3,
    ClientStatus.OUTREACH_SENT: 4,
    ClientStatus.FOLLOW_UP_1: 5,
    ClientStatus.FOLLOW_UP_2: 6,
    ClientStatus.REPLIED: 7,
    ClientStatus.READY_TO_SCHEDULE: 8,
    ClientStatus.SCHEDULED: 9,
    ClientStatus.COMPLETED: 10,
}

REFERRAL_STATUSES = (ClientStatus.PENDING_REFERRAL, ClientStatus.REFERRED)

WORKFLOW_BY_STATUS = {
    ClientStatus.NEW: ClosedFromWorkflow.EVALUATION,
    ClientStatus.PENDING_EVALUATION: ClosedFromWorkflow.EVALUATION,
    ClientStatus.EVALUATION_COMPLETE: ClosedFromWorkflow.EVALUATION,
    ClientStatus.EVALUATION_FLAGGED: ClosedFromWorkflow.EVALUATION,
    ClientStatus.PENDING_OUTREACH: ClosedFromWorkflow.OUTREACH,
    ClientStatus.OUTREACH_SENT: ClosedFromWorkflow.OUTREACH,
    ClientStatus.FOLLOW_UP_1: ClosedFromWorkflow.OUTREACH,
    ClientStatus.FOLLOW_UP_2: ClosedFromWorkflow.OUTREACH,
    ClientStatus.REPLIED: ClosedFromWorkflow.OUTREACH,
    ClientStatus.READY_TO_SCHEDULE: ClosedFromWorkflow.SCHEDULING,
    ClientStatus.SCHEDULED: ClosedFromWorkflow.SCHEDULING,
    ClientStatus.COMPLETED: ClosedFromWorkflow.SCHEDULING,
    ClientStatus.PENDING_REFERRAL: ClosedFromWorkflow.REFERRAL,
    ClientStatus.REFERRED: ClosedFromWorkflow.REFERRAL,
}


def is_closed_status(status: ClientStatus) -> bool:
    return status in CLOSED_STATUSES


def workflow_for_status(status: ClientStatus) -> Optional[ClosedFromWorkflow]:
    """Workflow stage a status belongs to; None for closed statuses."""
    return WORKFLOW_BY_STATUS.get(ClientStatus(status))


def validate_transition(current: ClientStatus, new: ClientStatus) -> None:
    """
    Raise ValidationFailed unless ``current -> new`` is a legal update.

    Closed statuses are entered and left only through the close,
    mark-duplicate and reopen actions, never through a plain update.
    """
    current, new = ClientStatus(current), ClientStatus(new)
    if is_closed_status(current):
        raise ValidationFailed("Client is closed; reopen the case before changing it", field="status")
    if is_closed_status(new):
        raise ValidationFailed(
            "Use the close or mark-duplicate action to close a client", field="status"
        )
    if new == current:
        return

    if current in REFERRAL_STATUSES:
        if current == ClientStatus.PENDING_REFERRAL and new == ClientStatus.REFERRED:
            return
        raise ValidationFailed(
            f"Cannot move a client from {current.value} to {new.value}", field="status"
        )
    if new in REFERRAL_STATUSES:
        return
    if STATUS_RANK[new] < STATUS_RANK[current]:
        raise ValidationFailed(
            f"Cannot move a client back from {current.value} to {new.value}", field="status"
        )


# =============================================================================
# Lifecycle change builders
# =============================================================================

def _closure_changes(
    client: ClientRecord,
    status: ClientStatus,
    reason: str,
    now: Optional[datetime],
) -> Dict[str, Any]:
    if is_closed_status(client.status):
        raise ValidationFailed("Client is already closed", field="status")
    return {
        "status": status,
        "closed_date": now or utc_now(),
        "closed_reason": reason,
        "closed_from_workflow": workflow_for_status(client.status),
        "closed_from_status": client.status,
    }


def close_changes(
    client: ClientRecord,
    status: ClientStatus,
    reason: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Changes that close an open client, remembering where it was."""
    return _closure_changes(client, status, reason.strip(), now)


def duplicate_changes(
    client: ClientRecord,
    original: ClientRecord,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Changes that close ``client`` as a duplicate of ``original``."""
    if original.id == client.id:
        raise ValidationFailed("A client cannot duplicate itself", field="duplicateOfClientId")
    changes = _closure_changes(
        client,
        ClientStatus.DUPLICATE,
        f"Duplicate of {original.full_name} ({original.id})",
        now,
    )
    changes["is_duplicate"] = True
    changes["duplicate_of_client_id"] = original.id
    return changes


def reopen_changes(client: ClientRecord, new_status: ClientStatus) -> Dict[str, Any]:
    """Changes that reopen a closed client into ``new_status``."""
    if not is_closed_status(client.status):
        raise ValidationFailed("Client is not in a closed status", field="status")
    if is_closed_status(new_status):
        raise ValidationFailed("Cannot reopen to a closed status", field="newStatus")
    return {
        "status": new_status,
        "closed_date": None,
        "closed_reason": None,
        "closed_from_workflow": None,
        "closed_from_status": None,
        "is_duplicate": False,
        "duplicate_of_client_id": None,
    }


def reopen_history_payload(
    client: ClientRecord,
    new_status: ClientStatus,
    reason: str,
    reopened_by: str,
) -> Dict[str, Any]:
    """CaseReopenHistory row preserving the closure being undone."""
    return {
        "client_id": client.id,
        "reopened_by": reopened_by,
        "reopen_reason": reason.strip(),
        "previous_status": client.status,
        "new_status": new_status,
        "closed_date": client.closed_date,
        "closed_reason": client.closed_reason,
        "closed_from_workflow": client.closed_from_workflow,
    }
