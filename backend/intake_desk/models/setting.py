"""Key/value application settings editable at runtime."""

from sqlalchemy import Column, DateTime, String, Text

from ..core.database import Base
from ..utils.identifiers import utc_now


# Well-known keys
OUTREACH_ATTEMPT_COUNT = "outreachAttemptCount"
PRACTICE_NAME = "practiceName"
PRACTICE_EMAIL = "practiceEmail"


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_by = Column(String(255), nullable=True)
