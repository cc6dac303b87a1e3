"""Availability model definitions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Time, UniqueConstraint
from medibook.database import Base

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class AvailabilityWindow(Base):
    """Recurring weekly working hours of one practitioner on one weekday."""
    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("practitioner_id", "day_of_week", name="uq_availability_practitioner_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_time_order"),
    )

    id = Column(Integer, primary_key=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False, index=True)
    day_of_week = Column(String(3), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
