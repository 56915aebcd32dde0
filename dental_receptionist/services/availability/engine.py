"""
Availability engine.

Turns busy intervals per resource into bookable gaps inside business hours.
Everything here is pure: no I/O, no mutation of inputs.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pytz

from ...core.models import DateTimePreference, Interval, Slot

MIN_GRANULARITY_MINUTES = 15


def business_window(day: date, tz, start_hour: int, end_hour: int):
    """Return the (open, close) instants of ``day`` in the clinic timezone."""
    if isinstance(tz, str):
        tz = pytz.timezone(tz)
    opening = tz.localize(datetime(day.year, day.month, day.day, start_hour))
    closing = tz.localize(datetime(day.year, day.month, day.day, end_hour))
    return opening, closing


def ceil_to_granularity(value: datetime, minutes: int) -> datetime:
    """Round ``value`` up to the next multiple of ``minutes`` past the hour."""
    value = value.replace(second=0, microsecond=0) + (
        timedelta(minutes=1) if value.second or value.microsecond else timedelta()
    )
    remainder = value.minute % minutes
    return value + timedelta(minutes=(minutes - remainder) % minutes)


def iter_weekdays(start_date: date, days: int) -> Iterable[date]:
    """Yield Monday-Friday dates in ``[start_date, start_date + days)``."""
    for offset in range(days):
        day = start_date + timedelta(days=offset)
        if day.weekday() < 5:
            yield day


def compute_gaps(
    busy: Sequence[Interval],
    window_start: datetime,
    window_end: datetime,
) -> List[Interval]:
    """
    Complement of ``busy`` within ``[window_start, window_end)``.

    Busy intervals may overlap, be unsorted or stick out of the window.
    """
    clipped = []
    for interval in busy:
        start = max(interval.start, window_start)
        end = min(interval.end, window_end)
        if start < end:
            clipped.append((start, end))
    clipped.sort()

    gaps: List[Interval] = []
    cursor = window_start
    for start, end in clipped:
        if start > cursor:
            gaps.append(Interval(start=cursor, end=start))
        cursor = max(cursor, end)
    if cursor < window_end:
        gaps.append(Interval(start=cursor, end=window_end))
    return gaps


def matches_preference(
    gap: Slot,
    duration_minutes: int,
    preference: Optional[DateTimePreference],
    window_minutes: int = 60,
) -> Optional[Slot]:
    """
    Apply a date/time preference to one gap.

    Returns the gap (possibly re-anchored to start near the preferred time)
    or None when the gap does not satisfy the preference.
    """
    if preference is None or preference.is_empty():
        return gap

    local_start = gap.start
    if preference.date is not None and local_start.date() != preference.date:
        return None
    if preference.date_range is not None and not preference.date_range.contains(local_start.date()):
        return None
    if preference.time is None:
        return gap

    length = timedelta(minutes=duration_minutes)
    preferred = local_start.replace(
        hour=preference.time.hour, minute=preference.time.minute, second=0, microsecond=0
    )
    # Latest start that still fits the appointment
    latest = gap.end - length
    candidate = min(max(preferred, gap.start), latest)
    if abs(candidate - preferred) > timedelta(minutes=window_minutes):
        return None
    if candidate == gap.start:
        return gap
    return Slot.between(gap.resource, candidate, gap.end)


def find_available_slots(
    busy_by_resource: Mapping[str, Sequence[Interval]],
    *,
    start_date: date,
    days: int,
    tz,
    duration_minutes: int,
    business_start_hour: int = 9,
    business_end_hour: int = 18,
    granularity_minutes: int = MIN_GRANULARITY_MINUTES,
    preference: Optional[DateTimePreference] = None,
    exclude_slot: Optional[Slot] = None,
    not_before: Optional[datetime] = None,
    window_minutes: int = 60,
) -> List[Slot]:
    """
    Compute free slots across resources.

    Args:
        busy_by_resource: Busy intervals keyed by resource (dentist)
        start_date: First calendar day to examine
        days: Number of calendar days in the horizon; weekends are skipped
        tz: Clinic timezone (name or pytz timezone)
        duration_minutes: Minimum length a gap needs to be offered
        business_start_hour: Opening hour
        business_end_hour: Closing hour
        granularity_minutes: Gaps shorter than this are never returned
        preference: Optional date/time preference filter
        exclude_slot: Slot the patient is moving away from
        not_before: Time before this instant is treated as busy
        window_minutes: Tolerance around a preferred time

    Returns:
        Gaps as Slot objects (duration = gap length), chronologically sorted
    """
    if isinstance(tz, str):
        tz = pytz.timezone(tz)
    minimum = max(granularity_minutes, duration_minutes)

    slots: List[Slot] = []
    for day in iter_weekdays(start_date, days):
        opening, closing = business_window(day, tz, business_start_hour, business_end_hour)
        if not_before is not None:
            opening = max(opening, ceil_to_granularity(not_before.astimezone(tz), granularity_minutes))
            if opening >= closing:
                continue

        for resource, busy in busy_by_resource.items():
            for gap in compute_gaps(busy, opening, closing):
                if gap.minutes < minimum:
                    continue
                slot = Slot.between(resource, gap.start.astimezone(tz), gap.end.astimezone(tz))
                if exclude_slot is not None and slot.overlaps(exclude_slot):
                    continue
                slot = matches_preference(slot, duration_minutes, preference, window_minutes)
                if slot is not None:
                    slots.append(slot)

    slots.sort(key=lambda s: (s.start, s.resource))
    return slots


def group_by_duration(durations: Dict[str, int]) -> Dict[int, List[str]]:
    """Invert ``{resource: minutes}`` so each duration is searched once."""
    groups: Dict[int, List[str]] = {}
    for resource, minutes in durations.items():
        groups.setdefault(minutes, []).append(resource)
    return groups
