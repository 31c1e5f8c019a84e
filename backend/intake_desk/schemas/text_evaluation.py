"""
Text evaluation schemas.

Rules are phrase lists (or regular expressions) with a category and a
severity; a result lists every non-negated match found in a client's
free-text answers.
"""

import re
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..core.errors import ValidationFailed
from ..models.text_evaluation_rule import TextEvaluationCategory, TextEvaluationSeverity
from .base import CamelModel, CamelRequest, UtcDatetime


def validate_rule_patterns(patterns: List[str], is_regex: bool) -> None:
    """
    Raises:
        ValidationFailed: for an empty pattern or a regex that does not compile
    """
    for pattern in patterns:
        if not pattern.strip():
            raise ValidationFailed("Patterns cannot be blank", field="patterns")
        if is_regex:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValidationFailed(f"Invalid regular expression {pattern!r}: {e}", field="patterns") from e


# =============================================================================
# Rule Record
# =============================================================================

class TextEvaluationRuleRecord(CamelModel):
    id: str
    name: str
    category: TextEvaluationCategory
    severity: TextEvaluationSeverity
    patterns: List[str] = Field(default_factory=list)
    is_regex: bool = False
    negation_words: List[str] = Field(default_factory=list)
    negation_window: int = 5
    requires_review: bool = False
    is_active: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime


# =============================================================================
# Create/Update Schemas
# =============================================================================

class TextEvaluationRuleCreate(CamelRequest):
    name: str = Field(..., min_length=1, max_length=255)
    category: TextEvaluationCategory
    severity: TextEvaluationSeverity
    patterns: List[str] = Field(..., min_length=1)
    is_regex: bool = False
    negation_words: List[str] = Field(default_factory=list)
    negation_window: int = Field(default=5, ge=0, le=50)
    requires_review: bool = False
    is_active: bool = True

    @field_validator("negation_words")
    @classmethod
    def strip_negation_words(cls, v: List[str]) -> List[str]:
        return [word.strip() for word in v if word.strip()]

    @model_validator(mode="after")
    def check_patterns(self) -> "TextEvaluationRuleCreate":
        try:
            validate_rule_patterns(self.patterns, self.is_regex)
        except ValidationFailed as e:
            raise ValueError(e.message) from e
        return self


class TextEvaluationRuleUpdate(CamelRequest):
    """Partial update; merged patterns are re-checked before saving."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[TextEvaluationCategory] = None
    severity: Optional[TextEvaluationSeverity] = None
    patterns: Optional[List[str]] = Field(default=None, min_length=1)
    is_regex: Optional[bool] = None
    negation_words: Optional[List[str]] = None
    negation_window: Optional[int] = Field(default=None, ge=0, le=50)
    requires_review: Optional[bool] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self) -> "TextEvaluationRuleUpdate":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


# =============================================================================
# Evaluation Results
# =============================================================================

class TextEvaluationFlag(CamelModel):
    category: TextEvaluationCategory
    severity: TextEvaluationSeverity
    matched_text: str
    # Sentence the match was found in.
    context: str
    rule_id: Optional[str] = None


class TextEvaluationResult(CamelModel):
    method: str = "pattern"
    flags: List[TextEvaluationFlag] = Field(default_factory=list)
    overall_severity: TextEvaluationSeverity = TextEvaluationSeverity.NONE
    needs_review: bool = False
    evaluated_at: UtcDatetime


class StoredTextEvaluationResponse(CamelModel):
    result: Optional[TextEvaluationResult] = None
    has_result: bool = False


class TextEvaluationTestRequest(CamelRequest):
    """Sample text run through the rules in effect, nothing stored."""

    text: str = Field(..., min_length=1, max_length=20000)
