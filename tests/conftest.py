import os

# Must be set before salonboard modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")

from datetime import date, datetime, time
from typing import Dict, List

import pytest

from salonboard.engine.board import ScheduleBoard
from salonboard.engine.errors import AppointmentNotFoundError, ConcurrentModificationError, PersistenceError
from salonboard.engine.interaction import InteractionController
from salonboard.engine.persistence import SchedulePersistence
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import (
    Appointment,
    BusinessHours,
    ScheduleDay,
    Station,
    WorkingHoursEntry,
)

MONDAY = date(2024, 3, 4)


class FakePersistence(SchedulePersistence):
    """In-memory backing store recording every call; set `fail` to make writes raise."""

    def __init__(self, schedule_day: ScheduleDay):
        self.schedule_day = schedule_day
        self.appointments: Dict[str, Appointment] = {a.id: a for a in schedule_day.appointments}
        self.constraints: Dict[str, ScheduleConstraint] = {c.id: c for c in schedule_day.constraints}
        self.calls: List[tuple] = []
        self.fail = False
        self._next_id = 1

    def _maybe_fail(self):
        if self.fail:
            raise PersistenceError("backend unavailable")

    def fetch_schedule_day(self, day: date) -> ScheduleDay:
        self.calls.append(("fetch", day))
        return ScheduleDay(
            day=day,
            stations=self.schedule_day.stations,
            appointments=list(self.appointments.values()),
            working_hours=self.schedule_day.working_hours,
            constraints=list(self.constraints.values()),
            business_hours=self.schedule_day.business_hours,
        )

    def create_appointment(self, station_id: str, start: datetime, end: datetime) -> Appointment:
        self.calls.append(("create", station_id, start, end))
        self._maybe_fail()
        appointment = Appointment(id=f"appt-{self._next_id}", station_id=station_id, start=start, end=end)
        self._next_id += 1
        self.appointments[appointment.id] = appointment
        return appointment

    def move_appointment(self, appointment_id: str, station_id: str, start: datetime) -> Appointment:
        self.calls.append(("move", appointment_id, station_id, start))
        self._maybe_fail()
        if appointment_id not in self.appointments:
            raise AppointmentNotFoundError(appointment_id)
        moved = self.appointments[appointment_id].moved_to(station_id, start)
        self.appointments[appointment_id] = moved
        return moved

    def resize_appointment(self, appointment_id: str, end: datetime) -> Appointment:
        self.calls.append(("resize", appointment_id, end))
        self._maybe_fail()
        if appointment_id not in self.appointments:
            raise AppointmentNotFoundError(appointment_id)
        resized = self.appointments[appointment_id].resized_to(end)
        self.appointments[appointment_id] = resized
        return resized

    def resize_constraint(self, constraint_id: str, end: datetime) -> ScheduleConstraint:
        self.calls.append(("resize_constraint", constraint_id, end))
        self._maybe_fail()
        if constraint_id not in self.constraints:
            raise ConcurrentModificationError(constraint_id)
        resized = self.constraints[constraint_id].resized_to(end)
        self.constraints[constraint_id] = resized
        return resized

    def move_constraint(self, constraint_id: str, station_id: str, start: datetime) -> ScheduleConstraint:
        self.calls.append(("move_constraint", constraint_id, station_id, start))
        self._maybe_fail()
        if constraint_id not in self.constraints:
            raise ConcurrentModificationError(constraint_id)
        moved = self.constraints[constraint_id].moved_to(station_id, start)
        self.constraints[constraint_id] = moved
        return moved

    @property
    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] != "fetch"]


@pytest.fixture
def day():
    """A Monday."""
    return MONDAY


@pytest.fixture
def at():
    """Build a datetime on the test Monday: at(10, 15)."""
    def _at(hour: int, minute: int = 0) -> datetime:
        return datetime.combine(MONDAY, time(hour, minute))
    return _at


@pytest.fixture
def stations():
    return [
        Station(id="st-1", name="Alice", service_type="grooming", display_order=0),
        Station(id="st-2", name="Bea", service_type="grooming", display_order=1),
        Station(id="st-3", name="Cleo", service_type="bathing", display_order=2),
    ]


@pytest.fixture
def working_hours(stations):
    """Every station works 09:00-17:00 on Mondays."""
    return [
        WorkingHoursEntry(station_id=s.id, weekday="monday", open_time=time(9), close_time=time(17))
        for s in stations
    ]


@pytest.fixture
def blackout(at):
    """Lunch block on st-1, 12:00-13:00."""
    return ScheduleConstraint(id="block-lunch", station_id="st-1", start=at(12), end=at(13), reason="lunch")


@pytest.fixture
def extra_shift(at):
    """Active override opening st-2 from 17:00 to 18:00."""
    return ScheduleConstraint(id="open-late", station_id="st-2", start=at(17), end=at(18), is_active=True)


@pytest.fixture
def booked(at):
    return [
        Appointment(id="a-1", station_id="st-1", start=at(10), end=at(10, 30), client_name="Rex"),
        Appointment(id="a-2", station_id="st-1", start=at(10, 15), end=at(10, 45), client_name="Milo"),
        Appointment(id="a-3", station_id="st-2", start=at(14), end=at(15), client_name="Luna"),
    ]


@pytest.fixture
def schedule_day(day, stations, booked, working_hours, blackout, extra_shift):
    return ScheduleDay(
        day=day,
        stations=stations,
        appointments=booked,
        working_hours=working_hours,
        constraints=[blackout, extra_shift],
        business_hours=BusinessHours(open_time=time(9), close_time=time(18)),
    )


@pytest.fixture
def board(schedule_day):
    """09:00-18:00 board, 15 minute slots, 1px per minute (15px slots)."""
    board = ScheduleBoard(schedule_day.day, interval_minutes=15, pixels_per_minute=1.0)
    board.apply_snapshot(schedule_day)
    return board


@pytest.fixture
def persistence(schedule_day):
    return FakePersistence(schedule_day)


@pytest.fixture
def controller(board, persistence):
    return InteractionController(board, persistence)
