# models/office.py
from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.db.base_class import Base

class Office(Base):
    __tablename__ = "offices"

    office_id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, nullable=False)

    # Relationships
    users = relationship("User", back_populates="office")
    managers = relationship("ManagerOffice", back_populates="office", cascade="all, delete-orphan")
