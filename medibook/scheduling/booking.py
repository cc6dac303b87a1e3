"""Booking creation and availability edits guarded against conflicting state.

The store's partial unique indexes on active bookings, one on (practitioner,
date, time) and one on (patient, date), are what actually prevent double-booking;
the checks here only give a clearer answer in the common, non-racing case.
"""

import logging
from datetime import date, datetime, time
from typing import Callable

from medibook.core.errors import (
    DuplicateSameDayBooking,
    InvalidWindow,
    NotFound,
    SlotAlreadyTaken,
    SlotExpired,
    WindowInUse,
)
from medibook.models.availability import WEEKDAY_LABELS, AvailabilityWindow
from medibook.models.booking import Booking
from medibook.scheduling.slots import is_strictly_after, minutes_of_day
from medibook.scheduling.store import SqlSchedulingStore

logger = logging.getLogger(__name__)

ConfirmationHook = Callable[[Booking], None]


def _dispatch_confirmation(on_confirmed: ConfirmationHook | None, booking: Booking) -> None:
    if on_confirmed is None:
        return
    try:
        on_confirmed(booking)
    except Exception:
        # The booking is already committed.
        logger.exception('Could not queue confirmation for booking %s', booking.id)


def create_booking(
    store: SqlSchedulingStore,
    patient_id: int,
    practitioner_id: int,
    booking_date: date,
    booking_time: time,
    now: datetime,
    notes: str | None = None,
    on_confirmed: ConfirmationHook | None = None,
) -> Booking:
    """Book ``practitioner_id`` at ``booking_date``/``booking_time`` for a patient.

    Checks run in order and the first failure is raised:

    1. ``SlotExpired`` when the slot is not strictly after ``now``.
    2. ``DuplicateSameDayBooking`` when the patient already holds an active
       booking that day with any practitioner, seen up front or reported by
       the store on insert.
    3. ``NotFound`` when the practitioner does not exist.
    4. ``SlotAlreadyTaken`` when the slot is already booked, either seen up
       front or reported by the store's unique index on insert.

    ``on_confirmed`` runs after the commit; anything it raises is logged and
    never affects the returned booking.
    """
    booking_time = booking_time.replace(second=0, microsecond=0)

    if not is_strictly_after(booking_date, booking_time, now):
        raise SlotExpired()

    if store.has_booked_on_date(patient_id, booking_date):
        raise DuplicateSameDayBooking()

    practitioner = store.get_practitioner(practitioner_id)
    if practitioner is None or not practitioner.is_active:
        raise NotFound('Practitioner not found.')

    if store.exists_booked_slot(practitioner_id, booking_date, booking_time):
        raise SlotAlreadyTaken()

    booking = store.create_booking_row(patient_id, practitioner_id, booking_date, booking_time, notes)
    logger.info(
        'Booking %s created for patient %s with practitioner %s at %s %s',
        booking.id,
        patient_id,
        practitioner_id,
        booking_date,
        booking_time.strftime('%H:%M'),
    )

    _dispatch_confirmation(on_confirmed, booking)
    return booking


def validate_window(day_of_week: str, start_time: time, end_time: time) -> None:
    if day_of_week not in WEEKDAY_LABELS:
        raise InvalidWindow(f'Day of week must be one of {", ".join(WEEKDAY_LABELS)}.')
    if minutes_of_day(start_time) >= minutes_of_day(end_time):
        raise InvalidWindow()


def save_window(
    store: SqlSchedulingStore,
    practitioner_id: int,
    day_of_week: str,
    start_time: time,
    end_time: time,
) -> AvailabilityWindow:
    """Create or replace the practitioner's window for ``day_of_week``."""
    validate_window(day_of_week, start_time, end_time)

    if store.get_practitioner(practitioner_id) is None:
        raise NotFound('Practitioner not found.')

    window = store.upsert_window(practitioner_id, day_of_week, start_time, end_time)
    logger.info(
        'Availability %s saved for practitioner %s on %s %s-%s',
        window.id,
        practitioner_id,
        day_of_week,
        window.start_time.strftime('%H:%M'),
        window.end_time.strftime('%H:%M'),
    )
    return window


def remove_window(store: SqlSchedulingStore, window_id: int, today: date) -> None:
    """Delete a window unless its practitioner has any active booking from ``today`` on.

    The check is practitioner-wide, not limited to the window's weekday.
    """
    window = store.get_window(window_id)
    if window is None:
        raise NotFound('Availability not found.')

    practitioner_id = window.practitioner_id
    if store.has_future_bookings(practitioner_id, today):
        raise WindowInUse()

    store.delete_window(window_id)
    logger.info('Availability %s deleted for practitioner %s', window_id, practitioner_id)
