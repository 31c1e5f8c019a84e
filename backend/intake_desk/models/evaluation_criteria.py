"""
Evaluation criteria database model.

Administrator-configured rules (field, operator, value, action) used to
flag client intakes. Evaluation order is ascending ``priority``.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class CriteriaOperator(str, enum.Enum):
    """Comparison applied between a client field and the criteria value."""
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    CONTAINS_ANY = "contains_any"
    CONTAINS_ALL = "contains_all"
    IN_LIST = "in_list"
    NOT_IN_LIST = "not_in_list"
    REGEX = "regex"


class CriteriaAction(str, enum.Enum):
    FLAG = "flag"
    FLAG_URGENT = "flag_urgent"
    FLAG_REVIEW = "flag_review"


class EvaluationCriteria(Base):
    """One triage rule."""

    __tablename__ = "evaluation_criteria"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    field = Column(String(50), nullable=False)
    operator = Column(String(20), nullable=False)
    value = Column(Text, nullable=False, default="")
    action = Column(String(20), nullable=False)
    priority = Column(Integer, nullable=False, default=0, index=True)
    # Insertion order; breaks priority ties.
    sequence = Column(Integer, nullable=False, default=0, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<EvaluationCriteria(id={self.id}, field={self.field}, operator={self.operator})>"
