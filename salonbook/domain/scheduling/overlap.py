"""
Booking overlap rules.

Appointments occupy the half-open window [start, start + duration). Two
windows intersect iff s1 < e2 and s2 < e1, so back-to-back bookings
(10:00-10:30 then 10:30-11:00) never collide. Only pending and confirmed
appointments block the calendar: a completed slot can be rebooked and a
cancelled one is free.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ...config import CLOSING_HOUR, DEFAULT_SERVICE_DURATION, OPENING_HOUR, SLOT_MINUTES
from ...models import BLOCKING_STATUSES, Appointment


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def total_duration(durations: Iterable[Optional[int]], default: int = DEFAULT_SERVICE_DURATION) -> int:
    """Sum service durations, counting unknown ones as `default` minutes"""
    durations = list(durations)
    if not durations:
        return default
    return sum(d if d is not None else default for d in durations)


def appointment_duration(appointment: Appointment) -> int:
    return total_duration(
        line.service.duration_minutes if line.service else None for line in appointment.services
    )


def appointment_window(appointment: Appointment) -> tuple[datetime, datetime]:
    start = appointment.appointment_date
    return start, start + timedelta(minutes=appointment_duration(appointment))


def blocks_calendar(appointment: Appointment) -> bool:
    return appointment.status in BLOCKING_STATUSES


def find_conflicts(
    proposed_start: datetime,
    duration_minutes: int,
    existing: Iterable[Appointment],
    exclude_appointment_id: Optional[int] = None,
) -> list[Appointment]:
    """Existing appointments whose window intersects the proposed one"""
    proposed_end = proposed_start + timedelta(minutes=duration_minutes)
    conflicts = []
    for appointment in existing:
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if not blocks_calendar(appointment):
            continue
        start, end = appointment_window(appointment)
        if intervals_overlap(proposed_start, proposed_end, start, end):
            conflicts.append(appointment)
    return conflicts


def generate_time_slots(
    day: date,
    opening_hour: int = OPENING_HOUR,
    closing_hour: int = CLOSING_HOUR,
    step_minutes: int = SLOT_MINUTES,
) -> list[datetime]:
    """Bookable start times for a day, e.g. 08:00, 08:30 ... 17:30"""
    slots = []
    current = datetime.combine(day, datetime.min.time()).replace(hour=opening_hour)
    closing = current.replace(hour=closing_hour)
    while current < closing:
        slots.append(current)
        current += timedelta(minutes=step_minutes)
    return slots


def slot_availability(
    day: date,
    duration_minutes: int,
    existing: Iterable[Appointment],
    exclude_appointment_id: Optional[int] = None,
) -> list[dict]:
    """Mark each slot of the day free or busy for a booking of the given length"""
    # The picker never offers windows shorter than one slot
    duration_minutes = max(duration_minutes, SLOT_MINUTES)
    existing = list(existing)
    return [
        {
            "start": slot,
            "end": slot + timedelta(minutes=duration_minutes),
            "available": not find_conflicts(slot, duration_minutes, existing, exclude_appointment_id),
        }
        for slot in generate_time_slots(day)
    ]
