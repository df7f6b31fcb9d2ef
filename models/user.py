"""
Staff user model (doctors, trackers, administrators).

Authentication lives outside this service; the core only needs identity,
role and a phone number for WhatsApp notifications.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Boolean, Enum as SQLEnum

from core.database import Base
from models.types import UTCDateTime, utcnow


class UserRole(str, PyEnum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    TRACKER = "TRACKER"


class User(Base):
    """Staff member that can be assigned tasks."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(SQLEnum(UserRole, name="user_role"), nullable=False, default=UserRole.TRACKER)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
