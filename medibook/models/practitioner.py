"""Practitioner model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from medibook.database import Base

APPLICATION_PENDING = "pending"
APPLICATION_APPROVED = "approved"
APPLICATION_REJECTED = "rejected"


class Practitioner(Base):
    """A user approved to see patients for one service."""
    __tablename__ = "practitioners"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    bio = Column(String)
    is_active = Column(Boolean, nullable=False, default=True)


class PractitionerApplication(Base):
    """A patient's request to be promoted to practitioner."""
    __tablename__ = "practitioner_applications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"))
    bio = Column(String)
    status = Column(String, nullable=False, default=APPLICATION_PENDING)
    created_at = Column(DateTime, server_default=func.now())
