"""
Outreach attempt API endpoints.

Attempts are nested under their client. Initializing pre-creates the
configured number of pending attempts; numbers a client already has are
left untouched.
"""

import logging
from typing import Union

from fastapi import APIRouter, Depends, status

from ..core.auth import get_current_user
from ..core.errors import NotFoundError, ValidationFailed
from ..models.audit_log import AuditAction, AuditEntityType
from ..repositories import Repositories, get_repositories
from ..schemas.outreach import (
    OutreachAttemptCreate,
    OutreachAttemptRecord,
    OutreachAttemptsResponse,
    OutreachAttemptUpdate,
    OutreachDeleteResponse,
)
from ..services.audit import AuditService, get_audit_service
from ..services.outreach import initialize_attempts
from .clients import load_client


logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/clients/{client_id}/outreach-attempts",
    tags=["Outreach"],
    dependencies=[Depends(get_current_user)],
)


@router.get(
    "",
    response_model=OutreachAttemptsResponse,
    summary="List Outreach Attempts",
    description="All attempts for a client in attempt-number order.",
)
async def list_attempts(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
) -> OutreachAttemptsResponse:
    load_client(repos, client_id)
    return OutreachAttemptsResponse(attempts=repos.outreach.get_by_client_id(client_id))


@router.post(
    "",
    response_model=Union[OutreachAttemptsResponse, OutreachAttemptRecord],
    status_code=status.HTTP_201_CREATED,
    summary="Create Outreach Attempts",
    description="Initialize the configured attempts (initialize=true) or create a single attempt.",
)
async def create_attempts(
    client_id: str,
    payload: OutreachAttemptCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> Union[OutreachAttemptsResponse, OutreachAttemptRecord]:
    """
    Create outreach attempts.

    With ``initialize`` every missing attempt 1..N is created as pending;
    attempts that fail to save are logged and left out of the response.
    The audit entry is written only when an attempt was actually added.
    """
    load_client(repos, client_id)

    if payload.initialize:
        before = repos.outreach.get_by_client_id(client_id)
        attempts = initialize_attempts(repos.outreach, repos.settings, client_id)
        if {a.id for a in attempts} != {a.id for a in before}:
            audit.log(
                AuditAction.INITIALIZE_OUTREACH,
                AuditEntityType.OUTREACH,
                client_id,
                previous=[a.to_wire() for a in before],
                new=[a.to_wire() for a in attempts],
            )
        return OutreachAttemptsResponse(attempts=attempts)

    if payload.attempt_number is None or payload.attempt_type is None:
        raise ValidationFailed("attemptNumber and attemptType are required")
    existing = {a.attempt_number for a in repos.outreach.get_by_client_id(client_id)}
    if payload.attempt_number in existing:
        raise ValidationFailed(
            f"Attempt {payload.attempt_number} already exists for this client", field="attemptNumber"
        )

    attempt = repos.outreach.create({
        "client_id": client_id,
        **payload.model_dump(exclude={"initialize"}),
    })
    audit.log_create(AuditEntityType.OUTREACH, attempt.id, attempt)
    return attempt


@router.patch(
    "",
    response_model=OutreachAttemptRecord,
    summary="Update Outreach Attempt",
    description="Partially update the attempt named by attemptId.",
)
async def update_attempt(
    client_id: str,
    payload: OutreachAttemptUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> OutreachAttemptRecord:
    before = repos.outreach.get_by_id(payload.attempt_id)
    if before is None or before.client_id != client_id:
        raise NotFoundError("Outreach attempt", payload.attempt_id)

    changes = payload.changes()
    changes.pop("attempt_id")
    updated = repos.outreach.update(payload.attempt_id, changes)
    if updated is None:
        raise NotFoundError("Outreach attempt", payload.attempt_id)
    audit.log_update(AuditEntityType.OUTREACH, updated.id, before, updated)
    return updated


@router.delete(
    "",
    response_model=OutreachDeleteResponse,
    summary="Delete Outreach Attempts",
    description="Delete every attempt of a client.",
)
async def delete_attempts(
    client_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> OutreachDeleteResponse:
    load_client(repos, client_id)
    before = repos.outreach.get_by_client_id(client_id)
    deleted = repos.outreach.delete_by_client_id(client_id)
    if deleted:
        audit.log(
            AuditAction.DELETE,
            AuditEntityType.OUTREACH,
            client_id,
            previous=[a.to_wire() for a in before],
        )
    logger.info(f"Deleted {deleted} outreach attempt(s) for client {client_id}")
    return OutreachDeleteResponse(deleted=deleted)
