"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from medibook.database import Base

ROLE_PATIENT = "patient"
ROLE_PENDING_PRACTITIONER = "pending_practitioner"
ROLE_PRACTITIONER = "practitioner"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default=ROLE_PATIENT)  # patient/practitioner/admin
    created_at = Column(DateTime, server_default=func.now())
