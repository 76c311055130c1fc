# app/models/user.py
"""
Users table — requesters, submitters and administrators.
Accounts are never hard-deleted: they are deactivated first, then
soft-deleted by stamping deleted_at.
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ADMIN_ROLES = {UserRole.ADMIN, UserRole.SUPER_ADMIN}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    employee_id = Column(String(50), index=True)
    phone = Column(String(30))
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, native_enum=False, length=20), default=UserRole.USER, nullable=False)
    division = Column(String(10))                 # A..K
    is_active = Column(Boolean, default=True, nullable=False)
    enable_password_changes = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vehicle_requests = relationship(
        "VehicleRequest", back_populates="requester", foreign_keys="VehicleRequest.requester_id"
    )
    created_requests = relationship(
        "VehicleRequest", back_populates="created_by", foreign_keys="VehicleRequest.created_by_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<User {self.id} email={self.email} role={self.role}>"
