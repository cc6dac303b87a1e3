"""Bookable slots per practitioner for one service."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from medibook.core import config
from medibook.scheduling.slots import Slot, WeeklyWindow, generate_slots
from medibook.scheduling.store import ServiceWindow, SqlSchedulingStore


@dataclass
class PractitionerSlots:
    practitioner_id: int
    practitioner: str
    slots: list[Slot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'practitioner_id': self.practitioner_id,
            'practitioner': self.practitioner,
            'slots': [slot.to_dict() for slot in self.slots],
        }


def filter_open_slots(
    candidates: Iterable[Slot],
    booked: set[tuple],
    now: datetime,
) -> list[Slot]:
    """Drop slots that are booked or not strictly after ``now``, keeping order."""
    return [
        slot
        for slot in candidates
        if slot.instant > now and (slot.date, slot.time) not in booked
    ]


def _group_by_practitioner(rows: Iterable[ServiceWindow]) -> list[tuple[int, str, int, list[WeeklyWindow]]]:
    grouped: dict[int, tuple[int, str, int, list[WeeklyWindow]]] = {}
    for row in rows:
        if row.practitioner_id not in grouped:
            grouped[row.practitioner_id] = (row.practitioner_id, row.practitioner, row.duration_minutes, [])
        grouped[row.practitioner_id][3].append(row.window)
    return list(grouped.values())


def get_available_slots(
    store: SqlSchedulingStore,
    service_id: int,
    now: datetime,
    horizon_days: int = config.SLOT_HORIZON_DAYS,
    break_minutes: int = config.SLOT_BREAK_MINUTES,
) -> list[PractitionerSlots]:
    """Open slots for every practitioner of ``service_id`` that has availability.

    Practitioners whose slots are all taken or past are still listed, with an
    empty slot list.
    """
    today = now.date()
    range_end = today + timedelta(days=horizon_days)
    result: list[PractitionerSlots] = []

    for practitioner_id, practitioner, duration_minutes, windows in _group_by_practitioner(
        store.list_windows_by_service(service_id)
    ):
        candidates = generate_slots(windows, duration_minutes, now, horizon_days, break_minutes)
        booked = store.list_booked_slots(practitioner_id, today, range_end) if candidates else set()
        result.append(
            PractitionerSlots(
                practitioner_id=practitioner_id,
                practitioner=practitioner,
                slots=filter_open_slots(candidates, booked, now),
            )
        )

    return result
