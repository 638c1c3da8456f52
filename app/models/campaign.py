# models/campaign.py
from sqlalchemy import Column, String, Integer, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.db.base_class import Base
from app.models.constants import CampaignStatus, check_in

class Campaign(Base):
    __tablename__ = "campaigns"

    campaign_id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=CampaignStatus.ATIVA)

    # Derived counters, always overwritten from a recount
    total_leads = Column(Integer, nullable=False, default=0)
    remaining_leads = Column(Integer, nullable=False, default=0)
    assigned_leads = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(check_in("status", CampaignStatus.ALL), name="chk_campaign_status"),
    )

    # Relationships
    leads = relationship("Lead", back_populates="campaign")
    import_batches = relationship("ImportBatch", back_populates="campaign")
