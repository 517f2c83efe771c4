import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salonboard.engine.errors import AppointmentNotFoundError, ConcurrentModificationError, PersistenceError
from salonboard.models.entities import Appointment
from salonboard.storage.database import Base
from salonboard.storage.repositories import (
    AppointmentRepository,
    ConstraintRepository,
    SqlSchedulePersistence,
    StationRepository,
    WorkingHoursRepository,
)


@pytest.fixture
def db(schedule_day):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    for station in schedule_day.stations:
        StationRepository(session).save(station)
    for entry in schedule_day.working_hours:
        WorkingHoursRepository(session).save(entry)
    WorkingHoursRepository(session).save_business_hours("monday", schedule_day.business_hours)
    for appointment in schedule_day.appointments:
        AppointmentRepository(session).save(appointment)
    for constraint in schedule_day.constraints:
        ConstraintRepository(session).save(constraint)
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqlSchedulePersistence(db)


class TestFetchScheduleDay:
    def test_loads_everything_for_the_day(self, store, schedule_day):
        fetched = store.fetch_schedule_day(schedule_day.day)

        assert [s.id for s in fetched.stations] == ["st-1", "st-2", "st-3"]
        assert {a.id for a in fetched.appointments} == {"a-1", "a-2", "a-3"}
        assert {c.id for c in fetched.constraints} == {"block-lunch", "open-late"}
        assert len(fetched.working_hours) == 3
        assert fetched.business_hours == schedule_day.business_hours

    def test_other_day_has_no_appointments(self, store, schedule_day):
        tuesday = schedule_day.day.replace(day=5)
        fetched = store.fetch_schedule_day(tuesday)

        assert fetched.appointments == []
        assert fetched.constraints == []
        assert fetched.business_hours is None

    def test_database_errors_become_persistence_errors(self, store, day, monkeypatch):
        def broken():
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store.stations, "list_all", broken)
        with pytest.raises(PersistenceError):
            store.fetch_schedule_day(day)


class TestWrites:
    def test_create(self, store, at):
        created = store.create_appointment("st-2", at(10), at(11), client_name="Biscuit")

        assert store.appointments.get_by_id(created.id) == created

    def test_move_keeps_duration(self, store, at):
        moved = store.move_appointment("a-3", "st-1", at(9))

        assert (moved.station_id, moved.start, moved.end) == ("st-1", at(9), at(10))
        assert store.appointments.get_by_id("a-3") == moved

    def test_resize(self, store, at):
        resized = store.resize_appointment("a-3", at(16))

        assert store.appointments.get_by_id("a-3").end == at(16) == resized.end

    def test_missing_appointment(self, store, at):
        with pytest.raises(AppointmentNotFoundError):
            store.move_appointment("gone", "st-1", at(9))
        with pytest.raises(AppointmentNotFoundError):
            store.resize_appointment("gone", at(9))

    def test_resize_constraint(self, store, at):
        resized = store.resize_constraint("block-lunch", at(13, 30))

        assert store.constraints.get_by_id("block-lunch").end == at(13, 30) == resized.end

    def test_resize_missing_constraint(self, store, at):
        with pytest.raises(ConcurrentModificationError):
            store.resize_constraint("gone", at(13))

    def test_move_constraint_keeps_duration(self, store, at):
        moved = store.move_constraint("block-lunch", "st-2", at(15))

        assert (moved.station_id, moved.start, moved.end) == ("st-2", at(15), at(16))
        assert store.constraints.get_by_id("block-lunch") == moved

    def test_move_missing_constraint(self, store, at):
        with pytest.raises(ConcurrentModificationError):
            store.move_constraint("gone", "st-1", at(9))

    def test_resize_before_start_is_a_conflict(self, store, at):
        with pytest.raises(ConcurrentModificationError):
            store.resize_appointment("a-3", at(13))

    def test_update_keeps_client(self, store, at):
        store.appointments.save(Appointment(id="a-9", station_id="st-1", start=at(9), end=at(9, 30), client_name="Pip"))
        store.move_appointment("a-9", "st-2", at(11))

        assert store.appointments.get_by_id("a-9").client_name == "Pip"
