from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class ScheduleConstraint:
    """
    Time-boxed override on a station.

    Active constraints open bookable time inside otherwise closed hours
    (an extra shift); inactive ones black out otherwise open hours.
    """
    id: str
    station_id: str
    start: datetime
    end: datetime
    is_active: bool = False
    reason: Optional[str] = None

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def intersects(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def moved_to(self, station_id: str, start: datetime) -> "ScheduleConstraint":
        return replace(self, station_id=station_id, start=start, end=start + self.duration)

    def resized_to(self, end: datetime) -> "ScheduleConstraint":
        return replace(self, end=end)
