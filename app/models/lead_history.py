# models/lead_history.py
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from datetime import datetime
from app.db.base_class import Base
from app.models.constants import HistoryAction, check_in

class LeadHistory(Base):
    """Append-only record of one ownership or status change of a lead."""

    __tablename__ = "lead_history"

    history_id = Column(Uuid, primary_key=True, default=uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.lead_id", ondelete="CASCADE"), nullable=False)
    action = Column(String(20), nullable=False)
    from_user_id = Column(Uuid, nullable=True)
    to_user_id = Column(Uuid, nullable=True)
    by_user_id = Column(Uuid, nullable=False)
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(check_in("action", HistoryAction.ALL), name="chk_history_action"),
        Index("idx_history_lead", "lead_id"),
        Index("idx_history_action", "action"),
        Index("idx_history_time", "created_at"),
    )

    # Relationships
    lead = relationship("Lead", back_populates="history")
