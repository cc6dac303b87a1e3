import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from medibook.database import Base  # noqa: E402
from medibook.models.availability import AvailabilityWindow  # noqa: E402
from medibook.models.booking import STATUS_BOOKED, Booking  # noqa: E402
from medibook.models.practitioner import Practitioner, PractitionerApplication  # noqa: E402, F401
from medibook.models.service import Service  # noqa: E402
from medibook.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PRACTITIONER, User  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(full_name: str = 'Pat Patient', role: str = ROLE_PATIENT, email: str | None = None) -> User:
        counter['value'] += 1
        user = User(
            email=email or f'user{counter["value"]}@example.com',
            full_name=full_name,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_service(db):
    def _make_service(name: str = 'Physiotherapy', duration_minutes: int = 30, price: str = '40.00') -> Service:
        service = Service(name=name, price=price, duration_minutes=duration_minutes)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make_service


@pytest.fixture
def make_practitioner(db, make_user):
    def _make_practitioner(service: Service, full_name: str = 'Dr Jones') -> Practitioner:
        user = make_user(full_name=full_name, role=ROLE_PRACTITIONER)
        practitioner = Practitioner(user_id=user.id, service_id=service.id, bio='')
        db.add(practitioner)
        db.commit()
        db.refresh(practitioner)
        return practitioner

    return _make_practitioner


@pytest.fixture
def make_window(db):
    def _make_window(practitioner: Practitioner, day_of_week: str, start: time, end: time) -> AvailabilityWindow:
        window = AvailabilityWindow(
            practitioner_id=practitioner.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
        )
        db.add(window)
        db.commit()
        db.refresh(window)
        return window

    return _make_window


@pytest.fixture
def make_booking(db):
    def _make_booking(patient: User, practitioner: Practitioner, booking_date, booking_time, status=STATUS_BOOKED) -> Booking:
        booking = Booking(
            patient_id=patient.id,
            practitioner_id=practitioner.id,
            booking_date=booking_date,
            booking_time=booking_time,
            status=status,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make_booking


@pytest.fixture
def admin(make_user):
    return make_user(full_name='Ada Admin', role=ROLE_ADMIN)
