"""
Timeline Builder

Turns a business day into the pixel grid shared by every station column.

Geometry:
- The window opens at business open (fallback: default start hour) and
  closes at max(business close, latest appointment end, min end of day).
- The window is cut into fixed slots of `interval_minutes`; the end is
  stretched to the next slot boundary so slots tile it exactly.
- slot[i].offset = i * interval * ppm, height = slot_count * interval * ppm.
- Hour markers sit on every wall-clock hour inside the window.

Degenerate input (inverted or zero-length business hours, non-positive
interval or scale) yields an empty timeline instead of an error.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from salonboard.models.entities import Appointment, BusinessHours, HourMarker, Slot, TimelineConfig


def pixels_per_minute_for(level: int, scale: Sequence[float]) -> float:
    """Resolve a 1-based zoom level against the available scale values."""
    if not scale:
        raise ValueError("pixel scale must contain at least one level")
    index = min(max(level, 1), len(scale)) - 1
    return scale[index]


def snap_to_interval(moment: datetime, interval_minutes: int, origin: Optional[datetime] = None) -> datetime:
    """
    Round a moment to the nearest interval boundary.

    Boundaries are counted from `origin`, or from midnight when no origin is
    given; pass the timeline start to land on its slot grid. Halfway points
    round up. Seconds and microseconds are dropped, so snapping an
    already-snapped value returns it unchanged.
    """
    if interval_minutes <= 0:
        return moment.replace(second=0, microsecond=0)
    if origin is None:
        origin = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (moment - origin).total_seconds()
    step = interval_minutes * 60
    snapped = math.floor(elapsed / step + 0.5) * step
    return origin + timedelta(seconds=snapped)


def round_minutes(minutes: float, interval_minutes: int) -> int:
    """Round a signed minute delta to the interval grid, halves toward +inf."""
    return int(math.floor(minutes / interval_minutes + 0.5) * interval_minutes)


def time_at_offset(timeline: TimelineConfig, y: float) -> datetime:
    return timeline.start + timedelta(minutes=y / timeline.pixels_per_minute)


def offset_of(timeline: TimelineConfig, moment: datetime) -> float:
    return (moment - timeline.start).total_seconds() / 60 * timeline.pixels_per_minute


def slot_index_at(timeline: TimelineConfig, y: float) -> Optional[int]:
    """Index of the slot containing pixel offset `y`, or None outside the grid."""
    if timeline.is_empty or y < 0 or y >= timeline.height:
        return None
    slot_height = timeline.interval_minutes * timeline.pixels_per_minute
    return min(int(y // slot_height), len(timeline.slots) - 1)


def _empty_timeline(start: datetime, interval_minutes: int, pixels_per_minute: float) -> TimelineConfig:
    return TimelineConfig(
        start=start,
        end=start,
        interval_minutes=interval_minutes,
        pixels_per_minute=pixels_per_minute,
        slots=[],
        hour_markers=[],
    )


def build_timeline(
    day: date,
    interval_minutes: int,
    pixels_per_minute: float,
    appointments: Iterable[Appointment] = (),
    business_hours: Optional[BusinessHours] = None,
    min_end_of_day: Optional[time] = None,
    default_start_hour: int = 8,
    default_end_hour: int = 20,
) -> TimelineConfig:
    """
    Build the timeline for one day.

    Args:
        day: selected day
        interval_minutes: slot length
        pixels_per_minute: vertical scale
        appointments: the day's appointments; only used to extend the end
        business_hours: open/close for the day, default window when absent
        min_end_of_day: the timeline never ends before this time of day

    Returns:
        TimelineConfig (possibly empty, never raises on degenerate input)
    """
    midnight = datetime.combine(day, time.min)
    if business_hours is not None:
        open_at = datetime.combine(day, business_hours.open_time)
        close_at = datetime.combine(day, business_hours.close_time)
    else:
        open_at = midnight + timedelta(hours=default_start_hour)
        close_at = midnight + timedelta(hours=default_end_hour)

    if close_at <= open_at or interval_minutes <= 0 or pixels_per_minute <= 0:
        return _empty_timeline(open_at, interval_minutes, pixels_per_minute)

    end = close_at
    for appointment in appointments:
        if appointment.end > end:
            end = appointment.end
    if min_end_of_day is not None:
        end = max(end, datetime.combine(day, min_end_of_day))

    total_minutes = (end - open_at).total_seconds() / 60
    slot_count = math.ceil(total_minutes / interval_minutes)
    end = open_at + timedelta(minutes=slot_count * interval_minutes)
    slot_height = interval_minutes * pixels_per_minute

    slots = []
    for index in range(slot_count):
        slot_start = open_at + timedelta(minutes=index * interval_minutes)
        slots.append(Slot(
            offset=index * slot_height,
            height=slot_height,
            start=slot_start,
            label=slot_start.strftime("%H:%M"),
        ))

    hour_markers = []
    cursor = open_at.replace(minute=0, second=0, microsecond=0)
    if cursor < open_at:
        cursor += timedelta(hours=1)
    while cursor <= end:
        minutes = (cursor - open_at).total_seconds() / 60
        hour_markers.append(HourMarker(offset=minutes * pixels_per_minute, label=cursor.strftime("%H:%M")))
        cursor += timedelta(hours=1)

    return TimelineConfig(
        start=open_at,
        end=end,
        interval_minutes=interval_minutes,
        pixels_per_minute=pixels_per_minute,
        slots=slots,
        hour_markers=hour_markers,
    )
