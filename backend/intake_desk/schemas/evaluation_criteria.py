"""
Evaluation criteria schemas.

Criteria are validated at write time: the target field must be evaluable,
list operators need a value, and regex values must compile.
"""

import re
from typing import List, Optional, Union

from pydantic import Field, model_validator

from ..core.errors import ValidationFailed
from ..models.evaluation_criteria import CriteriaAction, CriteriaOperator
from ..services.field_access import EVALUABLE_FIELDS, is_evaluable_field
from .base import CamelModel, CamelRequest, UtcDatetime
from .text_evaluation import TextEvaluationResult


VALUE_REQUIRED_OPERATORS = {
    CriteriaOperator.EQUALS,
    CriteriaOperator.NOT_EQUALS,
    CriteriaOperator.CONTAINS_ANY,
    CriteriaOperator.CONTAINS_ALL,
    CriteriaOperator.IN_LIST,
    CriteriaOperator.NOT_IN_LIST,
    CriteriaOperator.REGEX,
}


def validate_criteria_definition(field: str, operator: Union[str, CriteriaOperator], value: str) -> None:
    """
    Check that a field/operator/value triple can be evaluated.

    Raises:
        ValidationFailed: naming the offending attribute
    """
    try:
        operator = CriteriaOperator(operator)
    except ValueError:
        raise ValidationFailed(f"Invalid operator '{operator}'", field="operator") from None

    if not is_evaluable_field(field):
        allowed = ", ".join(EVALUABLE_FIELDS)
        raise ValidationFailed(f"Invalid field '{field}'. Allowed fields: {allowed}", field="field")

    if operator in VALUE_REQUIRED_OPERATORS and not (value or "").strip():
        raise ValidationFailed(f"Operator '{operator.value}' requires a value", field="value")

    if operator == CriteriaOperator.REGEX:
        try:
            re.compile(value, re.IGNORECASE)
        except re.error as e:
            raise ValidationFailed(f"Invalid regular expression: {e}", field="value") from e


# =============================================================================
# Criteria Record
# =============================================================================

class EvaluationCriteriaRecord(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    field: str
    # Kept as text so a bad stored operator surfaces at evaluation time.
    operator: str
    value: str = ""
    action: CriteriaAction
    priority: int = 0
    is_active: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime


# =============================================================================
# Create/Update Schemas
# =============================================================================

class EvaluationCriteriaCreate(CamelRequest):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    field: str
    operator: CriteriaOperator
    value: str = ""
    action: CriteriaAction
    priority: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def check_definition(self) -> "EvaluationCriteriaCreate":
        try:
            validate_criteria_definition(self.field, self.operator, self.value)
        except ValidationFailed as e:
            raise ValueError(e.message) from e
        return self


class EvaluationCriteriaUpdate(CamelRequest):
    """Partial update; the merged definition is re-validated before saving."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    field: Optional[str] = None
    operator: Optional[CriteriaOperator] = None
    value: Optional[str] = None
    action: Optional[CriteriaAction] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class EvaluationCriteriaBulkItem(EvaluationCriteriaUpdate):
    """Bulk item: with ``id`` it updates, without it creates."""

    id: Optional[str] = None


class EvaluationCriteriaBulkRequest(CamelRequest):
    criteria: List[EvaluationCriteriaBulkItem]


class BulkItemFailure(CamelModel):
    index: int
    id: Optional[str] = None
    error: str


class EvaluationCriteriaBulkResponse(CamelModel):
    """Only the successfully processed subset is returned in ``criteria``."""

    criteria: List[EvaluationCriteriaRecord]
    failed: List[BulkItemFailure] = Field(default_factory=list)


class EvaluableFieldsResponse(CamelModel):
    fields: List[str]
    operators: List[CriteriaOperator]
    actions: List[CriteriaAction]


# =============================================================================
# Evaluation Results
# =============================================================================

class CriteriaFlag(CamelModel):
    """One matched criterion, as shown to reviewers."""

    criteria_id: str
    criteria_name: str
    field: str
    action: CriteriaAction
    matched_value: str


class EvaluationResult(CamelModel):
    client_id: str
    flags: List[CriteriaFlag] = Field(default_factory=list)
    primary_action: Optional[CriteriaAction] = None
    referral_keywords: List[str] = Field(default_factory=list)
    text_evaluation: Optional[TextEvaluationResult] = None
    referral_reason: Optional[str] = None
    evaluation_score: int
    evaluation_notes: str
    new_status: str
    previous_status: str
