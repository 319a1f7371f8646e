"""Booking window slot arithmetic."""

from datetime import time, timedelta

from app.config import settings

SLOT_FORMAT = "%H:%M"


def generate_day_slots(
    start_hour: int | None = None,
    end_hour: int | None = None,
    slot_minutes: int | None = None,
) -> list[time]:
    """
    Build the canonical bookable slots for one day.

    The window is inclusive of its start and exclusive of its end, so the
    default 09:00-17:00 window at 30 minutes yields 16 slots, 09:00 to 16:30.

    Args:
        start_hour: First hour of the window (defaults to settings)
        end_hour: Hour the window closes (defaults to settings)
        slot_minutes: Slot length in minutes (defaults to settings)

    Returns:
        Ascending list of slot start times
    """
    start = timedelta(hours=settings.slot_day_start_hour if start_hour is None else start_hour)
    end = timedelta(hours=settings.slot_day_end_hour if end_hour is None else end_hour)
    step = timedelta(minutes=slot_minutes or settings.slot_minutes)

    slots = []
    current = start
    while current < end:
        total_minutes = int(current.total_seconds()) // 60
        slots.append(time(hour=total_minutes // 60, minute=total_minutes % 60))
        current += step
    return slots


def is_canonical_slot(value: time) -> bool:
    """Whether ``value`` is exactly one of the day's slot start times."""
    return value.replace(tzinfo=None) in generate_day_slots()


def format_slot(value: time) -> str:
    """Render a slot as ``HH:MM``."""
    return value.strftime(SLOT_FORMAT)
