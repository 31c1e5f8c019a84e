"""
Evaluation criteria API endpoints (admin only).

Criteria are checked at write time: the target field must be evaluable,
value-based operators need a value and regex values must compile. The
bulk endpoint processes each item independently.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ..core.auth import require_admin
from ..core.errors import IntakeDeskError, NotFoundError, ValidationFailed
from ..models.audit_log import AuditAction, AuditEntityType
from ..models.evaluation_criteria import CriteriaAction, CriteriaOperator
from ..repositories import Repositories, get_repositories
from ..schemas.common import DeleteResponse
from ..schemas.evaluation_criteria import (
    BulkItemFailure,
    EvaluableFieldsResponse,
    EvaluationCriteriaBulkItem,
    EvaluationCriteriaBulkRequest,
    EvaluationCriteriaBulkResponse,
    EvaluationCriteriaCreate,
    EvaluationCriteriaRecord,
    EvaluationCriteriaUpdate,
    validate_criteria_definition,
)
from ..services.audit import AuditService, get_audit_service
from ..services.field_access import EVALUABLE_FIELDS


logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/evaluation-criteria",
    tags=["Evaluation Criteria"],
    dependencies=[Depends(require_admin)],
)

CREATE_REQUIRED = ("name", "field", "operator", "action")


# =============================================================================
# Helper Functions
# =============================================================================

def apply_update(repos: Repositories, criteria_id: str, changes: dict) -> EvaluationCriteriaRecord:
    """Validate the merged definition, then save the partial update."""
    current = repos.criteria.get_by_id(criteria_id)
    if current is None:
        raise NotFoundError("Evaluation criteria", criteria_id)
    merged = {**current.model_dump(), **changes}
    validate_criteria_definition(merged["field"], merged["operator"], merged["value"])
    updated = repos.criteria.update(criteria_id, changes)
    if updated is None:
        raise NotFoundError("Evaluation criteria", criteria_id)
    return updated


def create_from_bulk_item(repos: Repositories, item: EvaluationCriteriaBulkItem) -> EvaluationCriteriaRecord:
    data = item.model_dump(mode="json", exclude_unset=True, exclude={"id"})
    missing = [name for name in CREATE_REQUIRED if data.get(name) is None]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")
    validate_criteria_definition(data["field"], data["operator"], data.get("value") or "")
    return repos.criteria.create(data)


# =============================================================================
# Criteria Endpoints
# =============================================================================

@router.get(
    "",
    response_model=List[EvaluationCriteriaRecord],
    summary="List Criteria",
    description="All criteria in evaluation order (priority ascending).",
)
async def list_criteria(repos: Repositories = Depends(get_repositories)) -> List[EvaluationCriteriaRecord]:
    return repos.criteria.get_all()


@router.get(
    "/fields",
    response_model=EvaluableFieldsResponse,
    summary="Evaluable Fields",
    description="Client fields, operators and actions a criterion may use.",
)
async def list_fields() -> EvaluableFieldsResponse:
    return EvaluableFieldsResponse(
        fields=list(EVALUABLE_FIELDS),
        operators=list(CriteriaOperator),
        actions=list(CriteriaAction),
    )


@router.post(
    "",
    response_model=EvaluationCriteriaRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Criteria",
)
async def create_criteria(
    payload: EvaluationCriteriaCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> EvaluationCriteriaRecord:
    criteria = repos.criteria.create(payload.model_dump(mode="json"))
    audit.log_create(AuditEntityType.CRITERIA, criteria.id, criteria)
    logger.info(f"Evaluation criteria created: {criteria.name} ({criteria.operator} on {criteria.field})")
    return criteria


@router.put(
    "",
    response_model=EvaluationCriteriaBulkResponse,
    summary="Bulk Save Criteria",
    description=(
        "Create (no id) or update (with id) many criteria. Items are processed "
        "independently; failures are listed and the rest are saved."
    ),
)
async def bulk_save_criteria(
    payload: EvaluationCriteriaBulkRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> EvaluationCriteriaBulkResponse:
    saved: List[EvaluationCriteriaRecord] = []
    previous: List[dict] = []
    failed: List[BulkItemFailure] = []

    for index, item in enumerate(payload.criteria):
        try:
            if item.id:
                before = repos.criteria.get_by_id(item.id)
                changes = item.model_dump(mode="json", exclude_unset=True, exclude={"id"})
                saved.append(apply_update(repos, item.id, changes))
                previous.append(before.to_wire())
            else:
                saved.append(create_from_bulk_item(repos, item))
        except IntakeDeskError as e:
            logger.warning(f"Bulk criteria item {index} failed: {e.message}")
            failed.append(BulkItemFailure(index=index, id=item.id, error=e.message))

    if saved:
        audit.log(
            AuditAction.BULK_UPDATE,
            AuditEntityType.CRITERIA,
            None,
            previous=previous or None,
            new=[c.to_wire() for c in saved],
        )
    return EvaluationCriteriaBulkResponse(criteria=saved, failed=failed)


@router.patch(
    "/{criteria_id}",
    response_model=EvaluationCriteriaRecord,
    summary="Update Criteria",
)
async def update_criteria(
    criteria_id: str,
    payload: EvaluationCriteriaUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> EvaluationCriteriaRecord:
    before = repos.criteria.get_by_id(criteria_id)
    if before is None:
        raise NotFoundError("Evaluation criteria", criteria_id)
    updated = apply_update(repos, criteria_id, payload.model_dump(mode="json", exclude_unset=True))
    audit.log_update(AuditEntityType.CRITERIA, criteria_id, before, updated)
    return updated


@router.delete(
    "/{criteria_id}",
    response_model=DeleteResponse,
    summary="Delete Criteria",
)
async def delete_criteria(
    criteria_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> DeleteResponse:
    before = repos.criteria.get_by_id(criteria_id)
    if before is None or not repos.criteria.delete(criteria_id):
        raise NotFoundError("Evaluation criteria", criteria_id)
    audit.log_delete(AuditEntityType.CRITERIA, criteria_id, before)
    return DeleteResponse()
