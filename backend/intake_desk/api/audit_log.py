"""
Audit log API endpoints (admin only).

Read-only views over the append-only audit log, newest first.
"""

from fastapi import APIRouter, Depends, Query

from ..core.auth import require_admin
from ..repositories import Repositories, get_repositories
from ..schemas.audit import AuditLogListResponse


router = APIRouter(prefix="/api/audit-log", tags=["Audit Log"], dependencies=[Depends(require_admin)])


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Recent Audit Entries",
)
async def list_recent_entries(
    limit: int = Query(default=50, ge=1, le=500),
    repos: Repositories = Depends(get_repositories),
) -> AuditLogListResponse:
    entries = repos.audit_log.get_recent(limit)
    return AuditLogListResponse(entries=entries, total=len(entries))


@router.get(
    "/{entity_id}",
    response_model=AuditLogListResponse,
    summary="Entity Audit Trail",
    description="Every audit entry recorded for one entity id.",
)
async def list_entity_entries(
    entity_id: str,
    repos: Repositories = Depends(get_repositories),
) -> AuditLogListResponse:
    entries = repos.audit_log.get_by_entity_id(entity_id)
    return AuditLogListResponse(entries=entries, total=len(entries))
