"""Patient self-cancellation and practitioner status changes."""

import logging
from datetime import datetime

from medibook.core import config
from medibook.core.errors import NotFound, TooLateToCancel
from medibook.models.booking import STATUS_CANCELLED, STATUS_COMPLETED
from medibook.scheduling.slots import slot_instant
from medibook.scheduling.store import SqlSchedulingStore

logger = logging.getLogger(__name__)


def hours_until(booking_date, booking_time, now: datetime) -> float:
    return (slot_instant(booking_date, booking_time) - now).total_seconds() / 3600


def cancel_booking(
    store: SqlSchedulingStore,
    booking_id: int,
    patient_id: int,
    now: datetime,
    notice_hours: float = config.CANCELLATION_NOTICE_HOURS,
) -> None:
    """Delete the patient's booking so the slot opens up again straight away.

    Raises ``NotFound`` if the booking is not the patient's and
    ``TooLateToCancel`` when less than ``notice_hours`` remain before it.
    Unlike the practitioner path, no history row is kept.
    """
    booking = store.get_patient_booking(booking_id, patient_id)
    if booking is None:
        raise NotFound('Booking not found.')

    if hours_until(booking.booking_date, booking.booking_time, now) < notice_hours:
        raise TooLateToCancel(
            f'Appointments can only be cancelled at least {notice_hours:g} hours in advance.'
        )

    store.delete_booking(booking_id, patient_id)
    logger.info('Booking %s cancelled by patient %s', booking_id, patient_id)


def set_booking_status(store: SqlSchedulingStore, booking_id: int, practitioner_id: int, new_status: str) -> int:
    if new_status not in (STATUS_COMPLETED, STATUS_CANCELLED):
        raise ValueError(f'Unsupported booking status: {new_status}')

    updated = store.update_booking_status(booking_id, practitioner_id, new_status)
    if updated:
        logger.info('Booking %s marked %s by practitioner %s', booking_id, new_status, practitioner_id)
    return updated


def mark_completed(store: SqlSchedulingStore, booking_id: int, practitioner_id: int) -> int:
    return set_booking_status(store, booking_id, practitioner_id, STATUS_COMPLETED)


def mark_cancelled(store: SqlSchedulingStore, booking_id: int, practitioner_id: int) -> int:
    return set_booking_status(store, booking_id, practitioner_id, STATUS_CANCELLED)
