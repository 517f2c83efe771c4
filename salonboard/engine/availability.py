"""
Availability Resolver

Decides, per (slot start, station), whether a slot can be booked.

Precedence (strongest first):
- inactive constraint (blackout) closes the slot
- active constraint opens the slot
- weekly working hours

Constraints of the same kind overlap as a union.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import Appointment, SlotAvailability, TimelineConfig, WorkingHoursEntry


class AvailabilityResolver:
    """
    Answers slot-level availability questions for one day.

    Working hours and constraints are grouped per station on construction;
    every predicate afterwards is a pure lookup.
    """

    def __init__(
        self,
        working_hours: Iterable[WorkingHoursEntry],
        constraints: Iterable[ScheduleConstraint],
        interval_minutes: int,
    ):
        self.interval = timedelta(minutes=interval_minutes)
        self.shifts: Dict[str, List[WorkingHoursEntry]] = defaultdict(list)
        self.active: Dict[str, List[ScheduleConstraint]] = defaultdict(list)
        self.inactive: Dict[str, List[ScheduleConstraint]] = defaultdict(list)

        for entry in working_hours:
            self.shifts[entry.station_id].append(entry)
        for shifts in self.shifts.values():
            shifts.sort(key=lambda e: (e.weekday, e.shift_order, e.open_time))

        for constraint in constraints:
            target = self.active if constraint.is_active else self.inactive
            target[constraint.station_id].append(constraint)

    def is_within_working_hours(self, slot_time: datetime, station_id: str) -> bool:
        """True iff any shift of the station covers the slot start."""
        return any(shift.covers(slot_time) for shift in self.shifts.get(station_id, ()))

    def is_generally_unavailable(self, slot_time: datetime, station_id: str) -> bool:
        return not self.is_within_working_hours(slot_time, station_id)

    def is_covered_by_active_constraint(self, slot_time: datetime, station_id: str) -> bool:
        return any(c.contains(slot_time) for c in self.active.get(station_id, ()))

    def is_covered_by_inactive_constraint(self, slot_time: datetime, station_id: str) -> bool:
        """Blackouts claim any slot they touch, not just the one holding their start."""
        slot_end = slot_time + self.interval
        return any(c.intersects(slot_time, slot_end) for c in self.inactive.get(station_id, ()))

    def is_bookable(self, slot_time: datetime, station_id: str) -> bool:
        if self.is_covered_by_inactive_constraint(slot_time, station_id):
            return False
        return (
            self.is_within_working_hours(slot_time, station_id)
            or self.is_covered_by_active_constraint(slot_time, station_id)
        )

    def is_slot_occupied(self, slot_time: datetime, appointments: Iterable[Appointment]) -> bool:
        slot_end = slot_time + self.interval
        return any(a.start < slot_end and a.end > slot_time for a in appointments)

    def is_empty_but_restricted(
        self,
        slot_time: datetime,
        station_id: str,
        appointments: Iterable[Appointment],
    ) -> bool:
        """
        Bookable only because an override opened it, and still free.

        Purely a rendering hint; eligibility is decided by is_bookable.
        """
        if not self.is_bookable(slot_time, station_id):
            return False
        if self.is_within_working_hours(slot_time, station_id):
            return False
        return not self.is_slot_occupied(slot_time, appointments)

    def is_range_bookable(
        self,
        station_id: str,
        start: datetime,
        end: datetime,
        appointments: Optional[Iterable[Appointment]] = None,
        ignore_appointment_id: Optional[str] = None,
    ) -> bool:
        """
        Check every slot start in [start, end) and any blackout touching the range.

        When `appointments` is given, the range must also be free of them
        (the appointment being edited is skipped via `ignore_appointment_id`).
        """
        if end <= start:
            return False
        if any(c.intersects(start, end) for c in self.inactive.get(station_id, ())):
            return False

        # Slot starts, plus the last second for ranges that end off the grid
        checkpoints = []
        cursor = start
        while cursor < end:
            checkpoints.append(cursor)
            cursor += self.interval
        checkpoints.append(end - timedelta(seconds=1))

        for moment in checkpoints:
            if not (
                self.is_within_working_hours(moment, station_id)
                or self.is_covered_by_active_constraint(moment, station_id)
            ):
                return False

        if appointments is not None:
            for appointment in appointments:
                if appointment.id == ignore_appointment_id or appointment.station_id != station_id:
                    continue
                if appointment.start < end and appointment.end > start:
                    return False
        return True

    def slot_states(
        self,
        timeline: TimelineConfig,
        station_id: str,
        appointments: Iterable[Appointment],
    ) -> List[SlotAvailability]:
        appointments = list(appointments)
        states = []
        for index, slot in enumerate(timeline.slots):
            within = self.is_within_working_hours(slot.start, station_id)
            active = self.is_covered_by_active_constraint(slot.start, station_id)
            blackout = self.is_covered_by_inactive_constraint(slot.start, station_id)
            bookable = (within or active) and not blackout
            empty = not self.is_slot_occupied(slot.start, appointments)
            states.append(SlotAvailability(
                index=index,
                start=slot.start,
                within_working_hours=within,
                opened_by_override=active and not within,
                blackout=blackout,
                bookable=bookable,
                empty=empty,
                empty_but_restricted=bookable and not within and empty,
            ))
        return states
