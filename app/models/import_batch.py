# models/import_batch.py
from sqlalchemy import Column, String, Integer, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.db.base_class import Base

class ImportBatch(Base):
    __tablename__ = "import_batches"

    batch_id = Column(Uuid, primary_key=True, default=uuid4)
    campaign_id = Column(Uuid, ForeignKey("campaigns.campaign_id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String(255), nullable=True)
    total_rows = Column(Integer, nullable=False, default=0)
    imported_rows = Column(Integer, nullable=False, default=0)
    created_by = Column(Uuid, nullable=True)

    __table_args__ = (
        Index("idx_batches_campaign", "campaign_id"),
    )

    # Relationships
    campaign = relationship("Campaign", back_populates="import_batches")
    leads = relationship("Lead", back_populates="import_batch")
