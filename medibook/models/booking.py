"""Booking model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Time, func, text
from medibook.database import Base

STATUS_BOOKED = "booked"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


class Booking(Base):
    """A patient's appointment with a practitioner at a concrete date and time."""
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one active booking per practitioner slot.
        Index(
            "uq_bookings_active_slot",
            "practitioner_id", "booking_date", "booking_time",
            unique=True,
            postgresql_where=text("status = 'booked'"),
            sqlite_where=text("status = 'booked'"),
        ),
        # At most one active booking per patient per day.
        Index(
            "uq_bookings_patient_active_day",
            "patient_id", "booking_date",
            unique=True,
            postgresql_where=text("status = 'booked'"),
            sqlite_where=text("status = 'booked'"),
        ),
        Index("idx_bookings_patient_date", "patient_id", "booking_date"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    booking_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=STATUS_BOOKED)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
