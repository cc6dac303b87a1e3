"""Typed failures raised by the scheduling engine.

Each error carries the HTTP status and the message the web layer shows, so
routes can translate any of them with a single ``except SchedulingError``.
"""

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for every expected scheduling outcome that is not a success."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = 'Request could not be completed.'

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class SlotExpired(SchedulingError):
    detail = 'This time slot has already passed.'


class DuplicateSameDayBooking(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    detail = 'You already have an appointment booked on this day.'


class SlotAlreadyTaken(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    detail = 'This time slot has already been booked.'


class WindowInUse(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    detail = 'Availability cannot be removed while future appointments are booked.'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = 'Not found.'


class TooLateToCancel(SchedulingError):
    detail = 'Appointments can only be cancelled at least 4 hours in advance.'


class InvalidWindow(SchedulingError):
    detail = 'Availability start time must be before end time.'


class ServiceInUse(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    detail = 'This service is still assigned to practitioners or bookings.'


class StoreUnavailable(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def to_http_exception(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
