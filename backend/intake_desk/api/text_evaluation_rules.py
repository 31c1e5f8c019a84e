"""
Text evaluation rule API endpoints (admin only).

With no stored rules the built-in set is in effect; ``POST /defaults``
copies it into storage so it can be edited. Once any rule is stored,
only stored rules are used.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ..core.auth import require_admin
from ..core.errors import NotFoundError, ValidationFailed
from ..models.audit_log import AuditAction, AuditEntityType
from ..repositories import Repositories, get_repositories
from ..schemas.common import DeleteResponse
from ..schemas.text_evaluation import (
    TextEvaluationResult,
    TextEvaluationRuleCreate,
    TextEvaluationRuleRecord,
    TextEvaluationRuleUpdate,
    TextEvaluationTestRequest,
    validate_rule_patterns,
)
from ..services.audit import AuditService, get_audit_service
from ..services.text_evaluation import DEFAULT_RULES, default_rules, evaluate_text, rules_in_effect


logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/settings/text-evaluation-rules",
    tags=["Text Evaluation Rules"],
    dependencies=[Depends(require_admin)],
)


def load_rule(repos: Repositories, rule_id: str) -> TextEvaluationRuleRecord:
    rule = repos.text_rules.get_by_id(rule_id)
    if rule is None:
        raise NotFoundError("Text evaluation rule", rule_id)
    return rule


# =============================================================================
# Rule Endpoints
# =============================================================================

@router.get(
    "",
    response_model=List[TextEvaluationRuleRecord],
    summary="List Rules",
    description="Stored rules in insertion order. Empty means the built-in rules are in effect.",
)
async def list_rules(repos: Repositories = Depends(get_repositories)) -> List[TextEvaluationRuleRecord]:
    return repos.text_rules.get_all()


@router.get(
    "/defaults",
    response_model=List[TextEvaluationRuleRecord],
    summary="Built-in Rules",
)
async def list_default_rules() -> List[TextEvaluationRuleRecord]:
    return default_rules()


@router.post(
    "/defaults",
    response_model=List[TextEvaluationRuleRecord],
    status_code=status.HTTP_201_CREATED,
    summary="Store Built-in Rules",
    description="Copy the built-in rules into storage. Refused once any rule is stored.",
)
async def seed_default_rules(
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> List[TextEvaluationRuleRecord]:
    if repos.text_rules.get_all():
        raise ValidationFailed("Text evaluation rules are already stored")
    created = [repos.text_rules.create(dict(rule)) for rule in DEFAULT_RULES]
    audit.log(
        AuditAction.BULK_UPDATE,
        AuditEntityType.TEXT_EVALUATION_RULE,
        None,
        new=[rule.to_wire() for rule in created],
    )
    logger.info(f"Stored {len(created)} built-in text evaluation rules")
    return created


@router.post(
    "/test",
    response_model=TextEvaluationResult,
    summary="Test Rules",
    description="Run sample text through the rules in effect without storing anything.",
)
async def test_rules(
    payload: TextEvaluationTestRequest,
    repos: Repositories = Depends(get_repositories),
) -> TextEvaluationResult:
    return evaluate_text(payload.text, rules_in_effect(repos.text_rules.get_all()))


@router.post(
    "",
    response_model=TextEvaluationRuleRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Rule",
)
async def create_rule(
    payload: TextEvaluationRuleCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> TextEvaluationRuleRecord:
    rule = repos.text_rules.create(payload.model_dump())
    audit.log_create(AuditEntityType.TEXT_EVALUATION_RULE, rule.id, rule)
    logger.info(f"Text evaluation rule created: {rule.name} ({rule.category.value}, {rule.severity.value})")
    return rule


@router.patch(
    "/{rule_id}",
    response_model=TextEvaluationRuleRecord,
    summary="Update Rule",
)
async def update_rule(
    rule_id: str,
    payload: TextEvaluationRuleUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> TextEvaluationRuleRecord:
    before = load_rule(repos, rule_id)
    changes = payload.changes()
    validate_rule_patterns(
        changes.get("patterns", before.patterns),
        changes.get("is_regex", before.is_regex),
    )
    updated = repos.text_rules.update(rule_id, changes)
    if updated is None:
        raise NotFoundError("Text evaluation rule", rule_id)
    audit.log_update(AuditEntityType.TEXT_EVALUATION_RULE, rule_id, before, updated)
    return updated


@router.delete(
    "/{rule_id}",
    response_model=DeleteResponse,
    summary="Delete Rule",
)
async def delete_rule(
    rule_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> DeleteResponse:
    before = load_rule(repos, rule_id)
    if not repos.text_rules.delete(rule_id):
        raise NotFoundError("Text evaluation rule", rule_id)
    audit.log_delete(AuditEntityType.TEXT_EVALUATION_RULE, rule_id, before)
    return DeleteResponse()
