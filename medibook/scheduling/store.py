"""SQLAlchemy access to availability and bookings for the scheduling engine.

Integrity violations on the active-booking indexes are reported as
``DuplicateSameDayBooking`` or ``SlotAlreadyTaken``; any other database failure is rolled back, logged and
raised as ``StoreUnavailable``.
"""

import logging
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medibook.core.errors import DuplicateSameDayBooking, SlotAlreadyTaken, StoreUnavailable
from medibook.models.availability import AvailabilityWindow
from medibook.models.booking import STATUS_BOOKED, Booking
from medibook.models.practitioner import Practitioner
from medibook.models.service import Service
from medibook.models.user import User
from medibook.scheduling.slots import WeeklyWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceWindow:
    practitioner_id: int
    practitioner: str
    window: WeeklyWindow
    duration_minutes: int


@dataclass(frozen=True)
class ConfirmationDetails:
    patient_email: str
    patient: str
    service: str
    practitioner: str
    booking_date: date
    booking_time: time


def _normalize_time(value: time) -> time:
    return value.replace(second=0, microsecond=0)


class SqlSchedulingStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _unavailable(self, operation: str) -> StoreUnavailable:
        self.db.rollback()
        logger.exception('Scheduling store failure during %s', operation)
        return StoreUnavailable()

    # Availability

    def list_availability(self, practitioner_id: int) -> list[AvailabilityWindow]:
        try:
            return (
                self.db.query(AvailabilityWindow)
                .filter(AvailabilityWindow.practitioner_id == practitioner_id)
                .order_by(AvailabilityWindow.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('list_availability') from exc

    def list_windows_by_service(self, service_id: int) -> list[ServiceWindow]:
        try:
            rows = (
                self.db.query(
                    Practitioner.id,
                    User.full_name,
                    AvailabilityWindow.day_of_week,
                    AvailabilityWindow.start_time,
                    AvailabilityWindow.end_time,
                    Service.duration_minutes,
                )
                .join(User, Practitioner.user_id == User.id)
                .join(Service, Practitioner.service_id == Service.id)
                .join(AvailabilityWindow, AvailabilityWindow.practitioner_id == Practitioner.id)
                .filter(Practitioner.service_id == service_id, Practitioner.is_active.is_(True))
                .order_by(Practitioner.id.asc(), AvailabilityWindow.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('list_windows_by_service') from exc

        return [
            ServiceWindow(
                practitioner_id=practitioner_id,
                practitioner=practitioner_name or '',
                window=WeeklyWindow(day_of_week=day_of_week, start_time=start_time, end_time=end_time),
                duration_minutes=duration_minutes,
            )
            for practitioner_id, practitioner_name, day_of_week, start_time, end_time, duration_minutes in rows
        ]

    def get_window(self, window_id: int) -> AvailabilityWindow | None:
        try:
            return self.db.get(AvailabilityWindow, window_id)
        except SQLAlchemyError as exc:
            raise self._unavailable('get_window') from exc

    def upsert_window(self, practitioner_id: int, day_of_week: str, start_time: time, end_time: time) -> AvailabilityWindow:
        try:
            window = (
                self.db.query(AvailabilityWindow)
                .filter(
                    AvailabilityWindow.practitioner_id == practitioner_id,
                    AvailabilityWindow.day_of_week == day_of_week,
                )
                .first()
            )
            if window is None:
                window = AvailabilityWindow(practitioner_id=practitioner_id, day_of_week=day_of_week)
                self.db.add(window)

            window.start_time = _normalize_time(start_time)
            window.end_time = _normalize_time(end_time)
            self.db.commit()
            self.db.refresh(window)
            return window
        except SQLAlchemyError as exc:
            raise self._unavailable('upsert_window') from exc

    def delete_window(self, window_id: int) -> int:
        try:
            deleted = (
                self.db.query(AvailabilityWindow)
                .filter(AvailabilityWindow.id == window_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return deleted
        except SQLAlchemyError as exc:
            raise self._unavailable('delete_window') from exc

    # Practitioners

    def get_practitioner(self, practitioner_id: int) -> Practitioner | None:
        try:
            return self.db.get(Practitioner, practitioner_id)
        except SQLAlchemyError as exc:
            raise self._unavailable('get_practitioner') from exc

    # Bookings

    def list_booked_slots(self, practitioner_id: int, date_from: date, date_to: date) -> set[tuple[date, time]]:
        """Booked (date, time) pairs for a practitioner with ``date_from <= date < date_to``."""
        try:
            rows = (
                self.db.query(Booking.booking_date, Booking.booking_time)
                .filter(
                    Booking.practitioner_id == practitioner_id,
                    Booking.status == STATUS_BOOKED,
                    Booking.booking_date >= date_from,
                    Booking.booking_date < date_to,
                )
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('list_booked_slots') from exc

        return {(booking_date, _normalize_time(booking_time)) for booking_date, booking_time in rows}

    def exists_booked_slot(self, practitioner_id: int, booking_date: date, booking_time: time) -> bool:
        try:
            return (
                self.db.query(Booking.id)
                .filter(
                    Booking.practitioner_id == practitioner_id,
                    Booking.booking_date == booking_date,
                    Booking.booking_time == _normalize_time(booking_time),
                    Booking.status == STATUS_BOOKED,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('exists_booked_slot') from exc

    def has_booked_on_date(self, patient_id: int, booking_date: date) -> bool:
        try:
            return (
                self.db.query(Booking.id)
                .filter(
                    Booking.patient_id == patient_id,
                    Booking.booking_date == booking_date,
                    Booking.status == STATUS_BOOKED,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('has_booked_on_date') from exc

    def has_future_bookings(self, practitioner_id: int, today: date) -> bool:
        try:
            count = (
                self.db.query(func.count(Booking.id))
                .filter(
                    Booking.practitioner_id == practitioner_id,
                    Booking.booking_date >= today,
                    Booking.status == STATUS_BOOKED,
                )
                .scalar()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('has_future_bookings') from exc

        return bool(count)

    def create_booking_row(
        self,
        patient_id: int,
        practitioner_id: int,
        booking_date: date,
        booking_time: time,
        notes: str | None = None,
    ) -> Booking:
        booking = Booking(
            patient_id=patient_id,
            practitioner_id=practitioner_id,
            booking_date=booking_date,
            booking_time=_normalize_time(booking_time),
            status=STATUS_BOOKED,
            notes=notes,
        )
        try:
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        except IntegrityError as exc:
            self.db.rollback()
            # Either active-booking index may have fired; the same-day rule is reported first.
            if self.has_booked_on_date(patient_id, booking_date):
                logger.info('Same-day conflict for patient %s on %s', patient_id, booking_date)
                raise DuplicateSameDayBooking() from exc
            logger.info(
                'Slot conflict for practitioner %s at %s %s',
                practitioner_id,
                booking_date,
                booking_time,
            )
            raise SlotAlreadyTaken() from exc
        except SQLAlchemyError as exc:
            raise self._unavailable('create_booking_row') from exc

        return booking

    def get_patient_booking(self, booking_id: int, patient_id: int) -> Booking | None:
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.patient_id == patient_id)
                .first()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('get_patient_booking') from exc

    def delete_booking(self, booking_id: int, patient_id: int) -> int:
        try:
            deleted = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.patient_id == patient_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return deleted
        except SQLAlchemyError as exc:
            raise self._unavailable('delete_booking') from exc

    def update_booking_status(self, booking_id: int, practitioner_id: int, new_status: str) -> int:
        """Move one of the practitioner's active bookings to ``new_status``.

        Only rows still ``booked`` are touched, so completed and cancelled
        bookings never change again.
        """
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.practitioner_id == practitioner_id,
                    Booking.status == STATUS_BOOKED,
                )
                .update({Booking.status: new_status}, synchronize_session=False)
            )
            self.db.commit()
            return updated
        except SQLAlchemyError as exc:
            raise self._unavailable('update_booking_status') from exc

    def update_booking_notes(self, booking_id: int, practitioner_id: int, notes: str | None) -> int:
        try:
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.practitioner_id == practitioner_id)
                .update({Booking.notes: notes}, synchronize_session=False)
            )
            self.db.commit()
            return updated
        except SQLAlchemyError as exc:
            raise self._unavailable('update_booking_notes') from exc

    def get_confirmation_details(self, booking: Booking) -> ConfirmationDetails | None:
        try:
            patient = self.db.get(User, booking.patient_id)
            row = (
                self.db.query(Service.name, User.full_name)
                .select_from(Practitioner)
                .join(User, Practitioner.user_id == User.id)
                .join(Service, Practitioner.service_id == Service.id)
                .filter(Practitioner.id == booking.practitioner_id)
                .first()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable('get_confirmation_details') from exc

        if patient is None or row is None:
            return None

        service_name, practitioner_name = row
        return ConfirmationDetails(
            patient_email=patient.email,
            patient=patient.full_name or patient.email,
            service=service_name,
            practitioner=practitioner_name or '',
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
        )
