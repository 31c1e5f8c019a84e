"""History of closed cases that were reopened."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from ..core.database import Base
from ..utils.identifiers import new_id, utc_now


class CaseReopenHistory(Base):
    """Snapshot of the closure a reopen undid."""

    __tablename__ = "case_reopen_history"

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    reopened_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    reopened_by = Column(String(255), nullable=False)
    reopen_reason = Column(Text, nullable=False)
    previous_status = Column(String(40), nullable=False)
    new_status = Column(String(40), nullable=False)
    closed_date = Column(DateTime(timezone=True), nullable=True)
    closed_reason = Column(Text, nullable=True)
    closed_from_workflow = Column(String(20), nullable=True)
