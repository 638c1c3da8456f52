# models/user.py
from sqlalchemy import Column, String, Boolean, ForeignKey, Index, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.db.base_class import Base
from app.models.constants import Role, check_in

class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid4)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(30), nullable=False, default=Role.CONSULTOR)
    office_id = Column(Uuid, ForeignKey("offices.office_id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        CheckConstraint(check_in("role", Role.ALL), name="chk_user_role"),
        Index("idx_users_office", "office_id"),
        Index("idx_users_role", "role"),
    )

    # Relationships
    office = relationship("Office", back_populates="users")
    managed_offices = relationship("ManagerOffice", back_populates="manager", cascade="all, delete-orphan")


class ManagerOffice(Base):
    """Offices a business manager (GERENTE_NEGOCIOS) is responsible for."""

    __tablename__ = "manager_offices"

    manager_office_id = Column(Uuid, primary_key=True, default=uuid4)
    manager_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    office_id = Column(Uuid, ForeignKey("offices.office_id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("manager_id", "office_id", name="uq_manager_office"),
    )

    manager = relationship("User", back_populates="managed_offices")
    office = relationship("Office", back_populates="managers")
