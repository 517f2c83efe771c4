from datetime import datetime, time

import pytest

from salonboard.engine.timeline import (
    build_timeline,
    offset_of,
    pixels_per_minute_for,
    round_minutes,
    slot_index_at,
    snap_to_interval,
    time_at_offset,
)
from salonboard.models.entities import Appointment, BusinessHours

NINE_TO_SIX = BusinessHours(open_time=time(9), close_time=time(18))


class TestBuildTimeline:
    """Slot grid and hour markers for one day."""

    def test_nine_to_six_at_fifteen_pixel_slots(self, day):
        """09:00-18:00, 15 minute slots of 15px -> 540px with a marker every 60px."""
        timeline = build_timeline(day, 15, 1.0, business_hours=NINE_TO_SIX)

        assert len(timeline.slots) == 36
        assert timeline.height == 540
        assert timeline.total_minutes == 540
        assert [m.offset for m in timeline.hour_markers[:3]] == [0, 60, 120]
        assert timeline.hour_markers[0].label == "09:00"
        assert timeline.hour_markers[-1].label == "18:00"
        assert len(timeline.hour_markers) == 10

    @pytest.mark.parametrize("interval", [5, 10, 15, 20, 30, 45, 60])
    def test_height_matches_slot_count(self, day, interval):
        """height == slot_count * interval * ppm and slots tile without gaps."""
        timeline = build_timeline(day, interval, 1.6, business_hours=NINE_TO_SIX)

        assert timeline.height == pytest.approx(len(timeline.slots) * interval * 1.6)
        for previous, current in zip(timeline.slots, timeline.slots[1:]):
            assert current.offset > previous.offset
            assert current.offset == pytest.approx(previous.offset + previous.height)
        assert timeline.end >= datetime.combine(day, time(18))

    def test_end_is_stretched_to_slot_boundary(self, day):
        """40 minutes does not divide 9 hours, so the last slot runs past close."""
        timeline = build_timeline(day, 40, 1.0, business_hours=NINE_TO_SIX)

        assert len(timeline.slots) == 14
        assert timeline.end == datetime.combine(day, time(18, 20))

    def test_late_appointment_extends_end(self, day, at):
        late = Appointment(id="late", station_id="st-1", start=at(17, 30), end=at(19, 10))
        timeline = build_timeline(day, 15, 1.0, appointments=[late], business_hours=NINE_TO_SIX)

        assert timeline.end == at(19, 15)

    def test_min_end_of_day_extends_end(self, day, at):
        timeline = build_timeline(day, 15, 1.0, business_hours=NINE_TO_SIX, min_end_of_day=time(20))

        assert timeline.end == at(20)

    def test_fallback_hours_without_business_hours(self, day, at):
        timeline = build_timeline(day, 15, 1.0)

        assert timeline.start == at(8)
        assert timeline.end == at(20)

    def test_markers_skip_partial_first_hour(self, day, at):
        hours = BusinessHours(open_time=time(9, 30), close_time=time(12))
        timeline = build_timeline(day, 15, 2.0, business_hours=hours)

        assert [m.label for m in timeline.hour_markers] == ["10:00", "11:00", "12:00"]
        assert timeline.hour_markers[0].offset == 60

    @pytest.mark.parametrize(
        "hours, interval, ppm",
        [
            (BusinessHours(open_time=time(18), close_time=time(9)), 15, 1.0),
            (BusinessHours(open_time=time(9), close_time=time(9)), 15, 1.0),
            (NINE_TO_SIX, 0, 1.0),
            (NINE_TO_SIX, 15, 0),
        ],
    )
    def test_degenerate_input_gives_empty_timeline(self, day, hours, interval, ppm):
        timeline = build_timeline(day, interval, ppm, business_hours=hours)

        assert timeline.is_empty
        assert timeline.height == 0
        assert timeline.hour_markers == []


class TestSnapping:
    """Rounding pointer-derived times onto the interval grid."""

    def test_snaps_to_nearest_boundary(self, at):
        assert snap_to_interval(at(10, 7), 15) == at(10, 0)
        assert snap_to_interval(at(10, 8), 15) == at(10, 15)

    def test_halfway_rounds_up(self, at):
        assert snap_to_interval(at(10, 7).replace(second=30), 15) == at(10, 15)

    def test_drops_seconds(self, at):
        assert snap_to_interval(at(10, 15).replace(second=20, microsecond=5), 15) == at(10, 15)

    @pytest.mark.parametrize("interval", [5, 10, 15, 20, 30, 60])
    def test_idempotent(self, at, interval):
        for minute in range(0, 60, 7):
            once = snap_to_interval(at(11, minute), interval)
            assert snap_to_interval(once, interval) == once

    def test_snaps_to_grid_of_origin(self, at):
        assert snap_to_interval(at(10, 7), 15, origin=at(9, 10)) == at(10, 10)
        assert snap_to_interval(at(10, 18), 15, origin=at(9, 10)) == at(10, 25)
        assert snap_to_interval(at(10, 10), 15, origin=at(9, 10)) == at(10, 10)

    def test_round_minutes_halves_round_up(self):
        assert round_minutes(7.5, 15) == 15
        assert round_minutes(-7.5, 15) == 0
        assert round_minutes(-8, 15) == -15
        assert round_minutes(7.4, 15) == 0
        assert round_minutes(-22, 15) == -15


class TestPixelMapping:
    def test_offset_and_time_are_inverse(self, day, at):
        timeline = build_timeline(day, 15, 2.0, business_hours=NINE_TO_SIX)

        assert offset_of(timeline, at(10, 30)) == 180
        assert time_at_offset(timeline, 180) == at(10, 30)

    def test_slot_index_at(self, day):
        timeline = build_timeline(day, 15, 2.0, business_hours=NINE_TO_SIX)

        assert slot_index_at(timeline, 0) == 0
        assert slot_index_at(timeline, 29.9) == 0
        assert slot_index_at(timeline, 30) == 1
        assert slot_index_at(timeline, -1) is None
        assert slot_index_at(timeline, timeline.height) is None

    def test_pixels_per_minute_levels(self):
        scale = [0.8, 1.2, 1.6, 2.0, 2.4, 2.8, 3.2]

        assert pixels_per_minute_for(3, scale) == 1.6
        assert pixels_per_minute_for(0, scale) == 0.8
        assert pixels_per_minute_for(99, scale) == 3.2
        with pytest.raises(ValueError):
            pixels_per_minute_for(1, [])
