"""
Schedule Board

In-memory state of one board day: the authoritative snapshot returned by
the persistence layer plus an optimistic overlay written by the
interaction controller while a save is in flight.

Every derived structure (timeline, availability, overlap layout) is
recomputed from the current appointment set; a fresh snapshot always wins
over optimistic edits (last writer wins at full-refetch granularity).
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence

from salonboard.engine.availability import AvailabilityResolver
from salonboard.engine.errors import AppointmentNotFoundError, SlotUnavailableError, UnknownStationError
from salonboard.engine.overlap import layout_column
from salonboard.engine.persistence import SchedulePersistence
from salonboard.engine.station_window import StationWindow, filter_stations
from salonboard.engine.timeline import build_timeline
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import (
    Appointment,
    CardLayout,
    ScheduleDay,
    SlotAvailability,
    Station,
    TimelineConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class StationColumn:
    station: Station
    appointments: List[Appointment]
    layouts: Dict[str, CardLayout]
    slots: List[SlotAvailability]
    constraints: List[ScheduleConstraint]


@dataclass
class BoardView:
    timeline: TimelineConfig
    window_start: int
    column_slots: int
    station_count: int
    can_page_back: bool
    can_page_forward: bool
    columns: List[StationColumn] = field(default_factory=list)


class ScheduleBoard:
    def __init__(
        self,
        day: date,
        interval_minutes: int,
        pixels_per_minute: float,
        min_end_of_day: Optional[time] = None,
        default_start_hour: int = 8,
        default_end_hour: int = 20,
    ):
        self.day = day
        self.interval_minutes = interval_minutes
        self.pixels_per_minute = pixels_per_minute
        self.min_end_of_day = min_end_of_day
        self.default_start_hour = default_start_hour
        self.default_end_hour = default_end_hour

        self.snapshot = ScheduleDay(day=day)
        self.appointments: Dict[str, Appointment] = {}
        self.constraints: Dict[str, ScheduleConstraint] = {}
        self.stations: Dict[str, Station] = {}
        self.timeline: TimelineConfig = self._build_timeline()
        self.resolver = AvailabilityResolver([], [], interval_minutes)

    # Snapshot ---------------------------------------------------------

    def apply_snapshot(self, schedule_day: ScheduleDay) -> None:
        """Overwrite all state with an authoritative day; optimistic edits are dropped."""
        self.snapshot = schedule_day
        self.day = schedule_day.day
        self.stations = {s.id: s for s in schedule_day.stations}
        self.appointments = {a.id: a for a in schedule_day.appointments}
        self.constraints = {c.id: c for c in schedule_day.constraints}
        self._recompute()
        logger.debug(
            f"Board {self.day}: {len(self.stations)} stations, {len(self.appointments)} appointments, "
            f"{len(self.constraints)} constraints"
        )

    def reload(self, persistence: SchedulePersistence) -> None:
        self.apply_snapshot(persistence.fetch_schedule_day(self.day))

    def set_scale(self, interval_minutes: int, pixels_per_minute: float) -> None:
        self.interval_minutes = interval_minutes
        self.pixels_per_minute = pixels_per_minute
        self._recompute()

    def _build_timeline(self) -> TimelineConfig:
        return build_timeline(
            self.day,
            self.interval_minutes,
            self.pixels_per_minute,
            appointments=self.appointments.values(),
            business_hours=self.snapshot.business_hours,
            min_end_of_day=self.min_end_of_day,
            default_start_hour=self.default_start_hour,
            default_end_hour=self.default_end_hour,
        )

    def _recompute(self) -> None:
        self.timeline = self._build_timeline()
        self.resolver = AvailabilityResolver(
            self.snapshot.working_hours, self.constraints.values(), self.interval_minutes
        )

    # Lookups ----------------------------------------------------------

    def station(self, station_id: str) -> Optional[Station]:
        return self.stations.get(station_id)

    def appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self.appointments.get(appointment_id)

    def constraint(self, constraint_id: str) -> Optional[ScheduleConstraint]:
        return self.constraints.get(constraint_id)

    def appointments_for(self, station_id: str) -> List[Appointment]:
        return sorted(
            (a for a in self.appointments.values() if a.station_id == station_id),
            key=lambda a: (a.start, a.id),
        )

    def constraints_for(self, station_id: str) -> List[ScheduleConstraint]:
        return sorted(
            (c for c in self.constraints.values() if c.station_id == station_id),
            key=lambda c: (c.start, c.id),
        )

    def is_range_bookable(
        self,
        station_id: str,
        start: datetime,
        end: datetime,
    ) -> bool:
        """Bookable on the station and inside the rendered day. Overlapping appointments are allowed."""
        if self.timeline.is_empty or start < self.timeline.start or end > self.timeline.end:
            return False
        return self.resolver.is_range_bookable(station_id, start, end)

    # Optimistic overlay -----------------------------------------------

    def stage_appointment(self, appointment: Appointment) -> Optional[Appointment]:
        previous = self.appointments.get(appointment.id)
        self.appointments[appointment.id] = appointment
        self.timeline = self._build_timeline()
        return previous

    def discard_appointment(self, appointment_id: str) -> Optional[Appointment]:
        previous = self.appointments.pop(appointment_id, None)
        self.timeline = self._build_timeline()
        return previous

    def restore_appointment(self, appointment_id: str, previous: Optional[Appointment]) -> None:
        if previous is None:
            self.appointments.pop(appointment_id, None)
        else:
            self.appointments[appointment_id] = previous
        self.timeline = self._build_timeline()

    def stage_constraint(self, constraint: ScheduleConstraint) -> Optional[ScheduleConstraint]:
        previous = self.constraints.get(constraint.id)
        self.constraints[constraint.id] = constraint
        self._recompute()
        return previous

    def restore_constraint(self, constraint_id: str, previous: Optional[ScheduleConstraint]) -> None:
        if previous is None:
            self.constraints.pop(constraint_id, None)
        else:
            self.constraints[constraint_id] = previous
        self._recompute()

    # Validation used by the HTTP layer --------------------------------

    def _require_station(self, station_id: str) -> Station:
        station = self.stations.get(station_id)
        if station is None or not station.is_active:
            raise UnknownStationError(f"unknown station {station_id}")
        return station

    def _require_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"appointment {appointment_id} not found")
        return appointment

    def check_create(self, station_id: str, start: datetime, end: datetime) -> None:
        self._require_station(station_id)
        if not self.is_range_bookable(station_id, start, end):
            raise SlotUnavailableError(f"{start:%H:%M}-{end:%H:%M} is not bookable on station {station_id}")

    def check_move(self, appointment_id: str, station_id: str, start: datetime) -> Appointment:
        appointment = self._require_appointment(appointment_id)
        self._require_station(station_id)
        end = start + appointment.duration
        if not self.is_range_bookable(station_id, start, end):
            raise SlotUnavailableError(f"{start:%H:%M}-{end:%H:%M} is not bookable on station {station_id}")
        return appointment

    def check_resize(self, appointment_id: str, end: datetime) -> Appointment:
        appointment = self._require_appointment(appointment_id)
        if end <= appointment.start:
            raise SlotUnavailableError("appointment must end after it starts")
        # Only the extension needs to be open; shrinking is always allowed
        if end > appointment.end and not self.is_range_bookable(
            appointment.station_id, appointment.end, end
        ):
            raise SlotUnavailableError(f"cannot extend appointment {appointment_id} to {end:%H:%M}")
        return appointment

    # Projection -------------------------------------------------------

    def column(self, station: Station) -> StationColumn:
        appointments = self.appointments_for(station.id)
        return StationColumn(
            station=station,
            appointments=appointments,
            layouts=layout_column(appointments, self.timeline),
            slots=self.resolver.slot_states(self.timeline, station.id, appointments),
            constraints=self.constraints_for(station.id),
        )

    def view(
        self,
        window: StationWindow,
        service_type: Optional[str] = None,
        visible_ids: Optional[Sequence[str]] = None,
        special_columns: int = 0,
    ) -> BoardView:
        window.sync_order(self.stations.values())
        window.apply_filter(service_type, visible_ids)
        ordered = window.order(filter_stations(self.stations.values(), visible_ids, service_type))
        slots = window.column_slots(special_columns)
        window.refresh(len(ordered), slots)
        return BoardView(
            timeline=self.timeline,
            window_start=window.window_start,
            column_slots=slots,
            station_count=len(ordered),
            can_page_back=window.can_page_back,
            can_page_forward=window.can_page_forward,
            columns=[self.column(station) for station in window.visible(ordered)],
        )
