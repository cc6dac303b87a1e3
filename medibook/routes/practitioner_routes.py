import logging
from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medibook.auth.dependencies import get_current_practitioner
from medibook.core.errors import SchedulingError, StoreUnavailable, to_http_exception
from medibook.database import get_db
from medibook.models.availability import WEEKDAY_LABELS
from medibook.models.booking import STATUS_BOOKED, STATUS_CANCELLED, STATUS_COMPLETED, Booking
from medibook.models.practitioner import Practitioner
from medibook.models.user import User
from medibook.scheduling import slots
from medibook.scheduling.cancellation import mark_cancelled, mark_completed
from medibook.scheduling.store import SqlSchedulingStore

router = APIRouter(tags=['practitioner'])
logger = logging.getLogger(__name__)

MAX_BOOKING_NOTES_LENGTH = 2000
BOOKING_FILTERS = ('upcoming', 'completed', 'missed', 'cancelled', 'all')


class DashboardResponse(BaseModel):
    today: int
    upcoming: int
    completed: int


class PractitionerBookingResponse(BaseModel):
    id: int
    patient_id: int
    patient: str
    booking_date: date
    booking_time: time
    status: str
    notes: str | None = None


class AvailabilityResponse(BaseModel):
    id: int
    day_of_week: str
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class UpdateNotesRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_BOOKING_NOTES_LENGTH} characters or fewer.')

        return normalized or None


def _store_unavailable(db: Session) -> HTTPException:
    db.rollback()
    logger.exception('Database error while handling practitioner request')
    return to_http_exception(StoreUnavailable())


def _at_or_after(now):
    return or_(
        Booking.booking_date > now.date(),
        and_(Booking.booking_date == now.date(), Booking.booking_time >= now.time()),
    )


def _before(now):
    return or_(
        Booking.booking_date < now.date(),
        and_(Booking.booking_date == now.date(), Booking.booking_time < now.time()),
    )


def booking_filter_conditions(booking_filter: str, now) -> list:
    if booking_filter == 'upcoming':
        return [Booking.status == STATUS_BOOKED, _at_or_after(now)]
    if booking_filter == 'completed':
        return [Booking.status == STATUS_COMPLETED]
    if booking_filter == 'missed':
        return [Booking.status == STATUS_BOOKED, _before(now)]
    if booking_filter == 'cancelled':
        return [Booking.status == STATUS_CANCELLED]
    if booking_filter == 'all':
        return []

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f'Filter must be one of: {", ".join(BOOKING_FILTERS)}.',
    )


@router.get('/dashboard', response_model=DashboardResponse)
def dashboard(
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    now = slots.local_now()

    def count(*conditions) -> int:
        return db.query(func.count(Booking.id)).filter(
            Booking.practitioner_id == practitioner.id,
            *conditions,
        ).scalar() or 0

    try:
        return DashboardResponse(
            today=count(Booking.booking_date == now.date(), Booking.status == STATUS_BOOKED),
            upcoming=count(
                Booking.status == STATUS_BOOKED,
                or_(
                    Booking.booking_date > now.date(),
                    and_(Booking.booking_date == now.date(), Booking.booking_time > now.time()),
                ),
            ),
            completed=count(Booking.status == STATUS_COMPLETED),
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.get('/bookings', response_model=list[PractitionerBookingResponse])
def list_bookings(
    booking_filter: str = Query(default='upcoming', alias='filter'),
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    conditions = booking_filter_conditions(booking_filter.strip().lower(), slots.local_now())

    try:
        rows = (
            db.query(Booking, User.full_name)
            .join(User, Booking.patient_id == User.id)
            .filter(Booking.practitioner_id == practitioner.id, *conditions)
            .order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    return [
        PractitionerBookingResponse(
            id=booking.id,
            patient_id=booking.patient_id,
            patient=patient_name or '',
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            status=booking.status,
            notes=booking.notes,
        )
        for booking, patient_name in rows
    ]


@router.post('/bookings/{booking_id}/notes', status_code=status.HTTP_204_NO_CONTENT)
def save_notes(
    booking_id: int,
    data: UpdateNotesRequest,
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    try:
        SqlSchedulingStore(db).update_booking_notes(booking_id, practitioner.id, data.notes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/bookings/{booking_id}/complete', status_code=status.HTTP_204_NO_CONTENT)
def complete_booking(
    booking_id: int,
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    try:
        mark_completed(SqlSchedulingStore(db), booking_id, practitioner.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/bookings/{booking_id}/cancel', status_code=status.HTTP_204_NO_CONTENT)
def cancel_booking_as_practitioner(
    booking_id: int,
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    try:
        mark_cancelled(SqlSchedulingStore(db), booking_id, practitioner.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/availability', response_model=list[AvailabilityResponse])
def list_practitioner_availability(
    practitioner: Practitioner = Depends(get_current_practitioner),
    db: Session = Depends(get_db),
):
    try:
        windows = SqlSchedulingStore(db).list_availability(practitioner.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return sorted(windows, key=lambda window: WEEKDAY_LABELS.index(window.day_of_week))
