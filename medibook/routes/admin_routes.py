import logging
from datetime import date, time
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from medibook.auth.dependencies import require_admin
from medibook.core.errors import SchedulingError, ServiceInUse, StoreUnavailable, to_http_exception
from medibook.database import get_db
from medibook.models.availability import WEEKDAY_LABELS, WEEKDAY_NAMES, AvailabilityWindow
from medibook.models.booking import Booking
from medibook.models.practitioner import (
    APPLICATION_APPROVED,
    APPLICATION_PENDING,
    APPLICATION_REJECTED,
    Practitioner,
    PractitionerApplication,
)
from medibook.models.service import Service
from medibook.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PRACTITIONER, User
from medibook.scheduling import slots
from medibook.scheduling.booking import remove_window, save_window
from medibook.scheduling.store import SqlSchedulingStore

router = APIRouter(tags=['admin'], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


class CreateServiceRequest(BaseModel):
    name: str
    price: Decimal
    duration_minutes: int

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service name is required.')
        return normalized

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError('Price cannot be negative.')
        return value

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Duration must be a positive number of minutes.')
        return value


class ServiceResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    duration_minutes: int

    class Config:
        from_attributes = True


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    full_name: str
    email: str
    service_id: int | None = None
    bio: str | None = None
    status: str


class ServiceAssignmentRequest(BaseModel):
    service_id: int


class PractitionerResponse(BaseModel):
    id: int
    user_id: int
    full_name: str
    email: str
    service_id: int
    service_name: str


class UserResponse(BaseModel):
    id: int
    full_name: str
    email: str
    role: str


class AvailabilityRequest(BaseModel):
    practitioner_id: int
    day_of_week: str
    start_time: time
    end_time: time

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: str) -> str:
        normalized = value.strip().lower()
        for label, name in zip(WEEKDAY_LABELS, WEEKDAY_NAMES):
            if normalized in (label.lower(), name.lower()):
                return label
        raise ValueError(f'Day of week must be one of {", ".join(WEEKDAY_LABELS)}.')


class AvailabilityResponse(BaseModel):
    id: int
    practitioner_id: int
    day_of_week: str
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class AvailabilityListItem(AvailabilityResponse):
    full_name: str
    service_name: str


class AdminBookingResponse(BaseModel):
    id: int
    booking_date: date
    booking_time: time
    status: str
    patient: str
    practitioner: str
    service: str


def _store_unavailable(db: Session) -> HTTPException:
    db.rollback()
    logger.exception('Database error while handling admin request')
    return to_http_exception(StoreUnavailable())


def _get_service_or_404(db: Session, service_id: int) -> Service:
    service = db.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')
    return service


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')
    return user


def promote_to_practitioner(db: Session, user: User, service_id: int, bio: str | None = None) -> Practitioner:
    """Give ``user`` the practitioner role, reusing a deactivated profile if one exists.

    Does not commit.
    """
    practitioner = db.query(Practitioner).filter(Practitioner.user_id == user.id).first()
    if practitioner is None:
        practitioner = Practitioner(user_id=user.id, service_id=service_id, bio=bio)
        db.add(practitioner)
    else:
        practitioner.service_id = service_id
        practitioner.is_active = True
        if bio:
            practitioner.bio = bio

    user.role = ROLE_PRACTITIONER
    return practitioner


def demote_to_patient(db: Session, user: User) -> None:
    """Deactivate the user's practitioner profile and make them a patient. Does not commit.

    The profile row is kept so past bookings still resolve their practitioner.
    """
    practitioner = db.query(Practitioner).filter(Practitioner.user_id == user.id).first()
    if practitioner is not None:
        practitioner.is_active = False
    user.role = ROLE_PATIENT


# Services

@router.get('/services', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    try:
        return db.query(Service).order_by(Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.post('/services', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(data: CreateServiceRequest, db: Session = Depends(get_db)):
    try:
        service = Service(name=data.name, price=data.price, duration_minutes=data.duration_minutes)
        db.add(service)
        db.commit()
        db.refresh(service)
        logger.info('Service %s created: %s', service.id, service.name)
        return service
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.delete('/services/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: int, db: Session = Depends(get_db)):
    try:
        service = _get_service_or_404(db, service_id)

        in_use = db.query(func.count(Practitioner.id)).filter(Practitioner.service_id == service_id).scalar()
        if in_use:
            raise to_http_exception(ServiceInUse())

        db.query(PractitionerApplication).filter(
            PractitionerApplication.service_id == service_id,
        ).update({PractitionerApplication.service_id: None}, synchronize_session=False)
        db.delete(service)
        db.commit()
        logger.info('Service %s deleted', service_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


# Practitioner applications

@router.get('/applications', response_model=list[ApplicationResponse])
def list_applications(db: Session = Depends(get_db)):
    try:
        rows = (
            db.query(PractitionerApplication, User.full_name, User.email)
            .join(User, PractitionerApplication.user_id == User.id)
            .order_by(PractitionerApplication.created_at.desc(), PractitionerApplication.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    return [
        ApplicationResponse(
            id=application.id,
            user_id=application.user_id,
            full_name=full_name or '',
            email=email,
            service_id=application.service_id,
            bio=application.bio,
            status=application.status,
        )
        for application, full_name, email in rows
    ]


def _get_pending_application(db: Session, application_id: int) -> PractitionerApplication:
    application = db.query(PractitionerApplication).filter(
        PractitionerApplication.id == application_id,
        PractitionerApplication.status == APPLICATION_PENDING,
    ).first()
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Pending application not found.')
    return application


@router.post('/applications/{application_id}/approve', status_code=status.HTTP_204_NO_CONTENT)
def approve_application(application_id: int, data: ServiceAssignmentRequest, db: Session = Depends(get_db)):
    try:
        application = _get_pending_application(db, application_id)
        _get_service_or_404(db, data.service_id)
        user = _get_user_or_404(db, application.user_id)

        promote_to_practitioner(db, user, data.service_id, application.bio)
        application.status = APPLICATION_APPROVED
        db.commit()
        logger.info('Application %s approved; user %s is now a practitioner', application_id, user.id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.post('/applications/{application_id}/reject', status_code=status.HTTP_204_NO_CONTENT)
def reject_application(application_id: int, db: Session = Depends(get_db)):
    try:
        application = _get_pending_application(db, application_id)
        application.status = APPLICATION_REJECTED

        user = db.get(User, application.user_id)
        if user is not None and user.role != ROLE_PRACTITIONER:
            user.role = ROLE_PATIENT
        db.commit()
        logger.info('Application %s rejected', application_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


# Practitioners

@router.get('/practitioners', response_model=list[PractitionerResponse])
def list_practitioners(db: Session = Depends(get_db)):
    try:
        rows = (
            db.query(Practitioner, User.full_name, User.email, Service.name)
            .join(User, Practitioner.user_id == User.id)
            .join(Service, Practitioner.service_id == Service.id)
            .filter(Practitioner.is_active.is_(True))
            .order_by(User.full_name.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    return [
        PractitionerResponse(
            id=practitioner.id,
            user_id=practitioner.user_id,
            full_name=full_name or '',
            email=email,
            service_id=practitioner.service_id,
            service_name=service_name,
        )
        for practitioner, full_name, email, service_name in rows
    ]


@router.post('/practitioners/{practitioner_id}/service', status_code=status.HTTP_204_NO_CONTENT)
def update_practitioner_service(
    practitioner_id: int,
    data: ServiceAssignmentRequest,
    db: Session = Depends(get_db),
):
    try:
        practitioner = db.get(Practitioner, practitioner_id)
        if practitioner is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Practitioner not found.')
        _get_service_or_404(db, data.service_id)

        practitioner.service_id = data.service_id
        db.commit()
        logger.info('Practitioner %s moved to service %s', practitioner_id, data.service_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.post('/practitioners/{practitioner_id}/deactivate', status_code=status.HTTP_204_NO_CONTENT)
def deactivate_practitioner(practitioner_id: int, db: Session = Depends(get_db)):
    try:
        practitioner = db.get(Practitioner, practitioner_id)
        if practitioner is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Practitioner not found.')

        user = _get_user_or_404(db, practitioner.user_id)
        demote_to_patient(db, user)
        db.commit()
        logger.info('Practitioner %s deactivated', practitioner_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


# Users

@router.get('/users', response_model=list[UserResponse])
def list_users(search: str | None = Query(default=None), db: Session = Depends(get_db)):
    try:
        query = db.query(User)
        if search and search.strip():
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))
        return [
            UserResponse(id=user.id, full_name=user.full_name or '', email=user.email, role=user.role)
            for user in query.order_by(User.created_at.desc(), User.id.desc()).all()
        ]
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.post('/users/{user_id}/make-practitioner', status_code=status.HTTP_204_NO_CONTENT)
def make_practitioner(user_id: int, data: ServiceAssignmentRequest, db: Session = Depends(get_db)):
    try:
        user = _get_user_or_404(db, user_id)
        if user.role == ROLE_ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Admins cannot be practitioners.')
        _get_service_or_404(db, data.service_id)

        promote_to_practitioner(db, user, data.service_id)
        db.commit()
        logger.info('User %s promoted to practitioner', user_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


@router.post('/users/{user_id}/make-patient', status_code=status.HTTP_204_NO_CONTENT)
def make_patient(user_id: int, db: Session = Depends(get_db)):
    try:
        user = _get_user_or_404(db, user_id)
        if user.role == ROLE_ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Admins cannot be demoted here.')

        demote_to_patient(db, user)
        db.commit()
        logger.info('User %s is now a patient', user_id)
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc


# Availability

@router.get('/availability', response_model=list[AvailabilityListItem])
def list_availability(db: Session = Depends(get_db)):
    try:
        rows = (
            db.query(AvailabilityWindow, User.full_name, Service.name)
            .join(Practitioner, AvailabilityWindow.practitioner_id == Practitioner.id)
            .join(User, Practitioner.user_id == User.id)
            .join(Service, Practitioner.service_id == Service.id)
            .order_by(User.full_name.asc(), AvailabilityWindow.id.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    items = [
        AvailabilityListItem(
            id=window.id,
            practitioner_id=window.practitioner_id,
            day_of_week=window.day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
            full_name=full_name or '',
            service_name=service_name,
        )
        for window, full_name, service_name in rows
    ]
    items.sort(key=lambda item: (item.full_name, WEEKDAY_LABELS.index(item.day_of_week)))
    return items


@router.post('/availability', response_model=AvailabilityResponse)
def upsert_availability(data: AvailabilityRequest, db: Session = Depends(get_db)):
    try:
        return save_window(
            SqlSchedulingStore(db),
            data.practitioner_id,
            data.day_of_week,
            data.start_time,
            data.end_time,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/availability/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(window_id: int, db: Session = Depends(get_db)):
    try:
        remove_window(SqlSchedulingStore(db), window_id, slots.local_now().date())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


# Bookings

@router.get('/bookings', response_model=list[AdminBookingResponse])
def list_all_bookings(db: Session = Depends(get_db)):
    patient_user = aliased(User)
    practitioner_user = aliased(User)

    try:
        rows = (
            db.query(Booking, patient_user.full_name, practitioner_user.full_name, Service.name)
            .join(patient_user, Booking.patient_id == patient_user.id)
            .join(Practitioner, Booking.practitioner_id == Practitioner.id)
            .join(practitioner_user, Practitioner.user_id == practitioner_user.id)
            .join(Service, Practitioner.service_id == Service.id)
            .order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise _store_unavailable(db) from exc

    return [
        AdminBookingResponse(
            id=booking.id,
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            status=booking.status,
            patient=patient_name or '',
            practitioner=practitioner_name or '',
            service=service_name,
        )
        for booking, patient_name, practitioner_name, service_name in rows
    ]
