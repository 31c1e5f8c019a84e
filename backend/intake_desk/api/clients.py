"""
Client API endpoints.

Handles intake records through their lifecycle: creation, partial
updates, evaluation against the configured criteria, closure, reopening
and duplicate marking. Clients are never deleted.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from jinja2 import TemplateError

from ..core.auth import Actor, get_current_user
from ..core.config import settings
from ..core.errors import IntakeDeskError, NotFoundError, ValidationFailed
from ..models.audit_log import AuditAction, AuditEntityType
from ..models.client import ClientStatus, ClosedFromWorkflow
from ..models.setting import PRACTICE_NAME
from ..repositories import Repositories, get_repositories
from ..schemas.client import (
    CaseReopenHistoryRecord,
    ClientCreate,
    ClientRecord,
    ClientUpdate,
    ClientUpdateResponse,
    CloseClientRequest,
    ClosedClientsResponse,
    MarkDuplicateRequest,
    ReopenClientRequest,
)
from ..schemas.evaluation_criteria import EvaluationResult
from ..schemas.text_evaluation import StoredTextEvaluationResponse, TextEvaluationResult
from ..services.audit import AuditService, get_audit_service
from ..services.evaluation import evaluate_client
from ..services.screener import screener_changes
from ..services.text_evaluation import client_free_text, evaluate_client_text, evaluate_text, rules_in_effect
from ..services.workflow import (
    close_changes,
    duplicate_changes,
    is_closed_status,
    reopen_changes,
    reopen_history_payload,
    validate_transition,
    workflow_for_status,
)
from ..utils.identifiers import utc_now


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/clients", tags=["Clients"], dependencies=[Depends(get_current_user)])


# =============================================================================
# Helper Functions
# =============================================================================

def load_client(repos: Repositories, client_id: str) -> ClientRecord:
    """Fetch a client or raise NotFoundError."""
    client = repos.clients.get_by_id(client_id)
    if client is None:
        raise NotFoundError("Client", client_id)
    return client


def save_client(repos: Repositories, client_id: str, changes: dict) -> ClientRecord:
    updated = repos.clients.update(client_id, changes)
    if updated is None:
        raise NotFoundError("Client", client_id)
    return updated


def attach_screener(repos: Repositories, client: ClientRecord, warnings: List[str]) -> ClientRecord:
    """
    Render the intake screener onto a client that became ready to schedule.

    Failures are reported through ``warnings``; the status update that
    triggered the render stands either way.
    """
    try:
        changes = screener_changes(client, repos.settings.get(PRACTICE_NAME))
        return save_client(repos, client.id, changes)
    except (TemplateError, IntakeDeskError) as e:
        logger.error(f"Screener generation failed for client {client.id}: {e}")
        warnings.append("Screener generation failed; the client was updated without it")
        return client


# =============================================================================
# Client CRUD Endpoints
# =============================================================================

@router.get(
    "",
    response_model=List[ClientRecord],
    summary="List Clients",
    description="List clients newest first, optionally filtered by status or due follow-ups.",
)
async def list_clients(
    status_filter: Optional[ClientStatus] = Query(default=None, alias="status"),
    follow_ups_due: bool = Query(default=False, alias="followUpsDue"),
    repos: Repositories = Depends(get_repositories),
) -> List[ClientRecord]:
    """
    List clients.

    Args:
        status_filter: only clients in this status
        follow_ups_due: only follow-up clients due today or earlier
    """
    if follow_ups_due:
        return repos.clients.get_follow_ups_due(utc_now().date())
    if status_filter:
        return repos.clients.get_by_status(status_filter)
    return repos.clients.get_all()


@router.post(
    "",
    response_model=ClientRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Client",
    description="Record a new intake submission.",
)
async def create_client(
    payload: ClientCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ClientRecord:
    client = repos.clients.create({**payload.model_dump(), "status": ClientStatus.NEW})
    audit.log_create(AuditEntityType.CLIENT, client.id, client)
    logger.info(f"Client created: {client.id} (source={client.source.value})")
    return client


@router.get(
    "/closed",
    response_model=ClosedClientsResponse,
    summary="List Closed Clients",
    description="Closed and duplicate clients, most recently closed first.",
)
async def list_closed_clients(
    workflow: Optional[ClosedFromWorkflow] = None,
    limit: int = Query(default=settings.closed_clients_default_limit, ge=1, le=500),
    repos: Repositories = Depends(get_repositories),
) -> ClosedClientsResponse:
    closed = repos.clients.get_closed(workflow.value if workflow else None)
    return ClosedClientsResponse(clients=closed[:limit], total=len(closed))


@router.get(
    "/{client_id}",
    response_model=ClientRecord,
    summary="Get Client",
)
async def get_client(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
) -> ClientRecord:
    return load_client(repos, client_id)


@router.patch(
    "/{client_id}",
    response_model=ClientUpdateResponse,
    summary="Update Client",
    description="Partial update. Status may only move forward; closed clients must be reopened first.",
)
async def update_client(
    client_id: str,
    payload: ClientUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ClientUpdateResponse:
    """
    Update a client.

    Moving a client to ready_to_schedule also renders its intake
    screener; a rendering failure is returned as a warning.
    """
    before = load_client(repos, client_id)
    changes = payload.changes()
    if is_closed_status(before.status):
        raise ValidationFailed("Client is closed; reopen the case before changing it", field="status")
    if "status" in changes:
        validate_transition(before.status, changes["status"])

    updated = save_client(repos, client_id, changes)
    audit.log_update(AuditEntityType.CLIENT, client_id, before, updated)

    warnings: List[str] = []
    if updated.status == ClientStatus.READY_TO_SCHEDULE and before.status != ClientStatus.READY_TO_SCHEDULE:
        updated = attach_screener(repos, updated, warnings)

    return ClientUpdateResponse(client=updated, warnings=warnings)


# =============================================================================
# Evaluation
# =============================================================================

@router.post(
    "/{client_id}/evaluate",
    response_model=EvaluationResult,
    summary="Evaluate Client",
    description=(
        "Run the active evaluation criteria and the free-text rules against a "
        "client and store the outcome."
    ),
)
async def evaluate(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> EvaluationResult:
    """
    Evaluate a client.

    Only clients still in the evaluation stage can be evaluated, so a
    re-run never moves a client backwards.
    """
    client = load_client(repos, client_id)
    if workflow_for_status(client.status) != ClosedFromWorkflow.EVALUATION:
        raise ValidationFailed(
            f"Client in status {client.status.value} is past evaluation", field="status"
        )

    text_result = evaluate_client_text(client, repos.text_rules.get_all())
    outcome = evaluate_client(client, repos.criteria.get_active(), text_result)
    updated = save_client(repos, client_id, outcome.client_changes())

    result = EvaluationResult(
        client_id=client_id,
        flags=outcome.flags,
        primary_action=outcome.primary_action,
        referral_keywords=outcome.referral_keywords,
        text_evaluation=outcome.text_result,
        referral_reason=updated.referral_reason,
        evaluation_score=outcome.score,
        evaluation_notes=outcome.notes,
        new_status=updated.status.value,
        previous_status=client.status.value,
    )
    audit.log(AuditAction.EVALUATE, AuditEntityType.CLIENT, client_id, previous=client, new=result)
    if outcome.status == ClientStatus.PENDING_REFERRAL:
        logger.warning(f"Client {client_id} sent to pending referral: {outcome.referral_reason}")
    return result


@router.post(
    "/{client_id}/evaluate-text",
    response_model=TextEvaluationResult,
    summary="Evaluate Client Text",
    description="Scan the client's free-text answers and store the result without changing status.",
)
async def evaluate_text_only(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> TextEvaluationResult:
    client = load_client(repos, client_id)
    result = evaluate_text(client_free_text(client), rules_in_effect(repos.text_rules.get_all()))
    save_client(repos, client_id, {"text_evaluation_result": result})
    audit.log(
        AuditAction.TEXT_EVALUATE,
        AuditEntityType.CLIENT,
        client_id,
        previous=client.text_evaluation_result,
        new=result,
    )
    return result


@router.get(
    "/{client_id}/evaluate-text",
    response_model=StoredTextEvaluationResponse,
    summary="Stored Text Evaluation",
)
async def get_text_evaluation(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
) -> StoredTextEvaluationResponse:
    client = load_client(repos, client_id)
    result = client.text_evaluation_result
    return StoredTextEvaluationResponse(result=result, has_result=result is not None)


# =============================================================================
# Lifecycle Actions
# =============================================================================

@router.post(
    "/{client_id}/close",
    response_model=ClientRecord,
    summary="Close Client",
    description="Close an open case, recording where in the workflow it stopped.",
)
async def close_client(
    client_id: str,
    payload: CloseClientRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ClientRecord:
    client = load_client(repos, client_id)
    updated = save_client(repos, client_id, close_changes(client, payload.status, payload.reason))
    audit.log(AuditAction.CLOSE_CASE, AuditEntityType.CLIENT, client_id, previous=client, new=updated)
    logger.info(f"Client {client_id} closed as {payload.status.value}")
    return updated


@router.post(
    "/{client_id}/reopen",
    response_model=ClientRecord,
    summary="Reopen Client",
    description="Reopen a closed case; the closure is preserved in the reopen history.",
)
async def reopen_client(
    client_id: str,
    payload: ReopenClientRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_user),
) -> ClientRecord:
    if len(payload.reason.strip()) < 10:
        raise ValidationFailed("Reopen reason must be at least 10 characters", field="reason")

    client = load_client(repos, client_id)
    changes = reopen_changes(client, payload.new_status)
    repos.reopen_history.create(
        reopen_history_payload(client, payload.new_status, payload.reason, actor.email)
    )
    updated = save_client(repos, client_id, changes)
    audit.log(AuditAction.REOPEN_CASE, AuditEntityType.CLIENT, client_id, previous=client, new=updated)
    logger.info(f"Client {client_id} reopened to {payload.new_status.value} by {actor.email}")
    return updated


@router.get(
    "/{client_id}/reopen-history",
    response_model=List[CaseReopenHistoryRecord],
    summary="Reopen History",
    description="Every time this case was reopened, newest first.",
)
async def get_reopen_history(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
) -> List[CaseReopenHistoryRecord]:
    load_client(repos, client_id)
    return repos.reopen_history.get_by_client_id(client_id)


@router.post(
    "/{client_id}/mark-duplicate",
    response_model=ClientRecord,
    summary="Mark Duplicate",
    description="Close a client as a duplicate of another existing client.",
)
async def mark_duplicate(
    client_id: str,
    payload: MarkDuplicateRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ClientRecord:
    client = load_client(repos, client_id)
    original = repos.clients.get_by_id(payload.duplicate_of_client_id)
    if original is None:
        raise ValidationFailed("Original client does not exist", field="duplicateOfClientId")
    updated = save_client(repos, client_id, duplicate_changes(client, original))
    audit.log(AuditAction.MARK_DUPLICATE, AuditEntityType.CLIENT, client_id, previous=client, new=updated)
    logger.info(f"Client {client_id} marked duplicate of {original.id}")
    return updated
