import logging
from datetime import date, time
from decimal import Decimal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medibook.auth.dependencies import get_current_user
from medibook.core.errors import SchedulingError, StoreUnavailable, to_http_exception
from medibook.database import get_db
from medibook.models.booking import Booking
from medibook.models.practitioner import APPLICATION_PENDING, Practitioner, PractitionerApplication
from medibook.models.service import Service
from medibook.models.user import ROLE_PATIENT, ROLE_PENDING_PRACTITIONER, User
from medibook.notifications import mailer
from medibook.scheduling import slots
from medibook.scheduling.availability import get_available_slots
from medibook.scheduling.booking import create_booking
from medibook.scheduling.cancellation import cancel_booking
from medibook.scheduling.store import SqlSchedulingStore

router = APIRouter(tags=['patient'])
logger = logging.getLogger(__name__)

MAX_BOOKING_NOTES_LENGTH = 600
MAX_BIO_LENGTH = 2000


def _normalize_optional_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


class ServiceResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    duration_minutes: int

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    date: date
    time: str


class PractitionerSlotsResponse(BaseModel):
    practitioner_id: int
    practitioner: str
    slots: list[SlotResponse]


class CreateBookingRequest(BaseModel):
    practitioner_id: int
    booking_date: date
    booking_time: time
    notes: str | None = None

    @field_validator('booking_time')
    @classmethod
    def validate_booking_time(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0, tzinfo=None)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_BOOKING_NOTES_LENGTH, 'Notes')


class BookingResponse(BaseModel):
    id: int
    practitioner_id: int
    booking_date: date
    booking_time: time
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


class PatientBookingResponse(BookingResponse):
    practitioner: str
    service: str


class CreateApplicationRequest(BaseModel):
    bio: str | None = None
    service_id: int | None = None

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_BIO_LENGTH, 'Bio')


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    service_id: int | None = None
    bio: str | None = None
    status: str

    class Config:
        from_attributes = True


def _store_unavailable(db: Session) -> HTTPException:
    db.rollback()
    logger.exception('Database error while handling patient request')
    return to_http_exception(StoreUnavailable())


@router.get('/services', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    try:
        return db.query(Service).order_by(Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.get('/slots-by-service/{service_id}', response_model=list[PractitionerSlotsResponse])
def list_slots_by_service(
    service_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del current_user

    try:
        grouped = get_available_slots(SqlSchedulingStore(db), service_id, slots.local_now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [PractitionerSlotsResponse(**practitioner_slots.to_dict()) for practitioner_slots in grouped]


@router.post('/bookings', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_slot(
    data: CreateBookingRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = SqlSchedulingStore(db)

    def queue_confirmation(booking: Booking) -> None:
        details = store.get_confirmation_details(booking)
        if details is not None:
            background_tasks.add_task(mailer.notify_booking_confirmed, details)

    try:
        return create_booking(
            store,
            patient_id=current_user.id,
            practitioner_id=data.practitioner_id,
            booking_date=data.booking_date,
            booking_time=data.booking_time,
            now=slots.local_now(),
            notes=data.notes,
            on_confirmed=queue_confirmation,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/bookings', response_model=list[PatientBookingResponse])
def list_my_bookings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    now = slots.local_now()

    try:
        rows = (
            db.query(Booking, User.full_name, Service.name)
            .join(Practitioner, Booking.practitioner_id == Practitioner.id)
            .join(User, Practitioner.user_id == User.id)
            .join(Service, Practitioner.service_id == Service.id)
            .filter(
                Booking.patient_id == current_user.id,
                or_(
                    Booking.booking_date > now.date(),
                    and_(Booking.booking_date == now.date(), Booking.booking_time >= now.time()),
                ),
            )
            .order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    return [
        PatientBookingResponse(
            id=booking.id,
            practitioner_id=booking.practitioner_id,
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            status=booking.status,
            notes=booking.notes,
            practitioner=practitioner_name or '',
            service=service_name,
        )
        for booking, practitioner_name, service_name in rows
    ]


@router.post('/bookings/{booking_id}/cancel', status_code=status.HTTP_204_NO_CONTENT)
def cancel_my_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        cancel_booking(SqlSchedulingStore(db), booking_id, current_user.id, slots.local_now())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/applications', response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def apply_as_practitioner(
    data: CreateApplicationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.role not in {ROLE_PATIENT, ROLE_PENDING_PRACTITIONER}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Only patients can apply to become practitioners.',
        )

    try:
        existing = db.query(PractitionerApplication).filter(
            PractitionerApplication.user_id == current_user.id,
            PractitionerApplication.status == APPLICATION_PENDING,
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='You already have a pending application.',
            )

        if data.service_id is not None and db.get(Service, data.service_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Service not found.',
            )

        application = PractitionerApplication(
            user_id=current_user.id,
            service_id=data.service_id,
            bio=data.bio,
            status=APPLICATION_PENDING,
        )
        current_user.role = ROLE_PENDING_PRACTITIONER
        db.add(application)
        db.commit()
        db.refresh(application)

        return application
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc
