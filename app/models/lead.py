# models/lead.py
from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, ForeignKey, Index, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from datetime import datetime
from app.db.base_class import Base
from app.models.constants import LeadStatus, check_in

class Lead(Base):
    __tablename__ = "leads"

    lead_id = Column(Uuid, primary_key=True, default=uuid4)
    campaign_id = Column(Uuid, ForeignKey("campaigns.campaign_id", ondelete="CASCADE"), nullable=False)
    import_batch_id = Column(Uuid, ForeignKey("import_batches.batch_id", ondelete="CASCADE"), nullable=True)

    company_name = Column(String(255), nullable=True)
    document = Column(String(30), nullable=True)
    phone = Column(String(30), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)

    # Ownership: consultant_id NULL means the lead is in stock
    consultant_id = Column(Uuid, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    owner_id = Column(Uuid, nullable=True)
    office_id = Column(Uuid, ForeignKey("offices.office_id", ondelete="SET NULL"), nullable=True)
    previous_consultants = Column(JSON, nullable=False, default=list)

    # Workflow
    status = Column(String(30), nullable=False, default=LeadStatus.NOVO)
    is_worked = Column(Boolean, nullable=False, default=False)
    last_status_change_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)
    last_interaction_at = Column(DateTime, nullable=True)
    last_outcome_code = Column(String(50), nullable=True)
    last_outcome_label = Column(String(100), nullable=True)
    last_outcome_note = Column(Text, nullable=True)
    next_follow_up_at = Column(DateTime, nullable=True)
    next_step_note = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(check_in("status", LeadStatus.ALL), name="chk_lead_status"),
        Index("idx_leads_stock", "campaign_id", "consultant_id", "status", "created_at"),
        Index("idx_leads_batch", "import_batch_id"),
        Index("idx_leads_office", "office_id"),
        Index("idx_leads_document", "campaign_id", "document"),
    )

    # Relationships
    campaign = relationship("Campaign", back_populates="leads")
    import_batch = relationship("ImportBatch", back_populates="leads")
    history = relationship("LeadHistory", back_populates="lead", cascade="all, delete-orphan")
