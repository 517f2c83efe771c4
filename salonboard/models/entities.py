from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from salonboard.models.constraints import ScheduleConstraint

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


@dataclass(frozen=True)
class Station:
    id: str
    name: str
    is_active: bool = True
    service_type: str = "grooming"
    display_order: int = 0


@dataclass(frozen=True)
class Appointment:
    id: str
    station_id: str
    start: datetime
    end: datetime
    status: str = "confirmed"
    client_name: Optional[str] = None
    notes: str = ""

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"appointment {self.id} must start before it ends")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def moved_to(self, station_id: str, start: datetime) -> "Appointment":
        return replace(self, station_id=station_id, start=start, end=start + self.duration)

    def resized_to(self, end: datetime) -> "Appointment":
        return replace(self, end=end)


@dataclass(frozen=True)
class WorkingHoursEntry:
    station_id: str
    weekday: str  # lower-case English day name
    open_time: time
    close_time: time
    shift_order: int = 0

    def covers(self, moment: datetime) -> bool:
        if self.weekday.lower() != weekday_name(moment):
            return False
        return self.open_time <= moment.time() < self.close_time


@dataclass(frozen=True)
class BusinessHours:
    open_time: time
    close_time: time


@dataclass(frozen=True)
class ScheduleDay:
    day: date
    stations: List[Station] = field(default_factory=list)
    appointments: List[Appointment] = field(default_factory=list)
    working_hours: List[WorkingHoursEntry] = field(default_factory=list)
    constraints: List[ScheduleConstraint] = field(default_factory=list)
    business_hours: Optional[BusinessHours] = None


@dataclass(frozen=True)
class Slot:
    offset: float
    height: float
    start: datetime
    label: str


@dataclass(frozen=True)
class HourMarker:
    offset: float
    label: str


@dataclass(frozen=True)
class TimelineConfig:
    start: datetime
    end: datetime
    interval_minutes: int
    pixels_per_minute: float
    slots: List[Slot]
    hour_markers: List[HourMarker]

    @property
    def height(self) -> float:
        return len(self.slots) * self.interval_minutes * self.pixels_per_minute

    @property
    def total_minutes(self) -> int:
        return len(self.slots) * self.interval_minutes

    @property
    def is_empty(self) -> bool:
        return not self.slots

    def slot_start(self, index: int) -> datetime:
        return self.start + timedelta(minutes=index * self.interval_minutes)


@dataclass(frozen=True)
class CardLayout:
    appointment_id: str
    top: float
    height: float
    overlap_count: int
    z_index: int
    width_fraction: float


@dataclass(frozen=True)
class SlotAvailability:
    index: int
    start: datetime
    within_working_hours: bool
    opened_by_override: bool
    blackout: bool
    bookable: bool
    empty: bool
    empty_but_restricted: bool
