from datetime import time, timedelta

import pytest

from salonboard.engine.availability import AvailabilityResolver
from salonboard.engine.board import ScheduleBoard
from salonboard.engine.station_window import StationWindow
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import (
    Appointment,
    BusinessHours,
    ScheduleDay,
    WorkingHoursEntry,
    weekday_name,
)


class TestEdgeCases:
    """Boundary conditions of the domain values and an empty day."""

    def test_appointment_must_end_after_start(self, at):
        with pytest.raises(ValueError):
            Appointment(id="x", station_id="st-1", start=at(10), end=at(10))
        with pytest.raises(ValueError):
            Appointment(id="x", station_id="st-1", start=at(11), end=at(10))

    def test_moved_keeps_duration(self, at):
        appointment = Appointment(id="x", station_id="st-1", start=at(10), end=at(10, 40))
        moved = appointment.moved_to("st-2", at(15))

        assert moved.duration == timedelta(minutes=40)
        assert appointment.station_id == "st-1"

    def test_weekday_name(self, at):
        assert weekday_name(at(10)) == "monday"
        assert weekday_name(at(10) + timedelta(days=6)) == "sunday"

    def test_weekday_is_case_insensitive(self, at):
        entry = WorkingHoursEntry("st-1", "Monday", time(9), time(17))

        assert entry.covers(at(9))
        assert not entry.covers(at(17))

    def test_constraint_boundaries(self, at):
        block = ScheduleConstraint(id="b", station_id="st-1", start=at(12), end=at(13))

        assert block.contains(at(12)) and not block.contains(at(13))
        assert not block.intersects(at(13), at(14))
        assert block.intersects(at(12, 59), at(14))

    def test_empty_day(self, day):
        board = ScheduleBoard(day, 15, 1.0)
        board.apply_snapshot(ScheduleDay(day=day))
        view = board.view(StationWindow(max_visible=5, window_start=3))

        assert view.columns == []
        assert view.window_start == 0
        assert not view.can_page_forward
        assert len(board.timeline.slots) == 48

    def test_inverted_business_hours_leave_nothing_bookable(self, day, stations, at):
        board = ScheduleBoard(day, 15, 1.0)
        board.apply_snapshot(ScheduleDay(
            day=day,
            stations=stations,
            business_hours=BusinessHours(open_time=time(18), close_time=time(9)),
        ))
        view = board.view(StationWindow(max_visible=5))

        assert board.timeline.is_empty
        assert all(column.slots == [] for column in view.columns)
        assert not board.is_range_bookable("st-1", at(10), at(11))

    def test_zero_length_constraint_touches_nothing(self, working_hours, at):
        empty = ScheduleConstraint(id="z", station_id="st-1", start=at(12), end=at(12))
        resolver = AvailabilityResolver(working_hours, [empty], 15)

        assert resolver.is_bookable(at(12), "st-1")
