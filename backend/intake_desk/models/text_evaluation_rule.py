"""
Text evaluation rule database model.

Phrase lists scanned for in a client's free-text answers. A match is
ignored when one of the rule's negation words appears within the
``negation_window`` words before it.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class TextEvaluationCategory(str, enum.Enum):
    SUICIDAL_IDEATION = "suicidal_ideation"
    SELF_HARM = "self_harm"
    SUBSTANCE_USE = "substance_use"
    PSYCHOSIS = "psychosis"
    EATING_DISORDER = "eating_disorder"
    HOSPITALIZATION = "hospitalization"
    VIOLENCE = "violence"
    ABUSE = "abuse"
    CUSTOM = "custom"


class TextEvaluationSeverity(str, enum.Enum):
    """Ordered lowest to highest."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TextEvaluationRule(Base):
    """One phrase list with its category and severity."""

    __tablename__ = "text_evaluation_rules"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    category = Column(String(30), nullable=False, index=True)
    severity = Column(String(10), nullable=False)
    patterns = Column(JSON, nullable=False, default=list)
    is_regex = Column(Boolean, nullable=False, default=False)
    negation_words = Column(JSON, nullable=False, default=list)
    negation_window = Column(Integer, nullable=False, default=5)
    requires_review = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Insertion order.
    sequence = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<TextEvaluationRule(id={self.id}, category={self.category}, severity={self.severity})>"
