import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salonboard.engine.errors import AppointmentNotFoundError, ConcurrentModificationError, PersistenceError
from salonboard.engine.persistence import SchedulePersistence
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import (
    Appointment,
    BusinessHours,
    ScheduleDay,
    Station,
    WorkingHoursEntry,
    weekday_name,
)
from salonboard.storage.database import (
    AppointmentModel,
    BusinessHoursModel,
    StationConstraintModel,
    StationModel,
    WorkingHoursModel,
)

logger = logging.getLogger(__name__)


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class StationRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[Station]:
        models = self.db.query(StationModel).order_by(StationModel.display_order, StationModel.name).all()
        return [self._model_to_station(m) for m in models]

    def save(self, station: Station) -> None:
        existing = self.db.query(StationModel).filter(StationModel.id == station.id).first()
        if existing:
            existing.name = station.name
            existing.is_active = station.is_active
            existing.service_type = station.service_type
            existing.display_order = station.display_order
        else:
            self.db.add(StationModel(
                id=station.id,
                name=station.name,
                is_active=station.is_active,
                service_type=station.service_type,
                display_order=station.display_order,
            ))
        self.db.commit()

    @staticmethod
    def _model_to_station(model: StationModel) -> Station:
        return Station(
            id=model.id,
            name=model.name,
            is_active=model.is_active,
            service_type=model.service_type,
            display_order=model.display_order or 0,
        )


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, appointment_id: str) -> Optional[Appointment]:
        model = self._get_model(appointment_id)
        if not model:
            return None
        return self._model_to_appointment(model)

    def list_for_day(self, day: date) -> List[Appointment]:
        day_start, day_end = _day_bounds(day)
        models = (
            self.db.query(AppointmentModel)
            .filter(AppointmentModel.start_at < day_end, AppointmentModel.end_at > day_start)
            .order_by(AppointmentModel.start_at)
            .all()
        )
        return [self._model_to_appointment(m) for m in models]

    def save(self, appointment: Appointment) -> Appointment:
        existing = self._get_model(appointment.id)
        if existing:
            existing.station_id = appointment.station_id
            existing.start_at = appointment.start
            existing.end_at = appointment.end
            existing.status = appointment.status
            existing.client_name = appointment.client_name
            existing.notes = appointment.notes
        else:
            self.db.add(AppointmentModel(
                id=appointment.id,
                station_id=appointment.station_id,
                start_at=appointment.start,
                end_at=appointment.end,
                status=appointment.status,
                client_name=appointment.client_name,
                notes=appointment.notes,
            ))
        self.db.commit()
        return appointment

    def _get_model(self, appointment_id: str) -> Optional[AppointmentModel]:
        return self.db.query(AppointmentModel).filter(AppointmentModel.id == appointment_id).first()

    @staticmethod
    def _model_to_appointment(model: AppointmentModel) -> Appointment:
        return Appointment(
            id=model.id,
            station_id=model.station_id,
            start=model.start_at,
            end=model.end_at,
            status=model.status,
            client_name=model.client_name,
            notes=model.notes or "",
        )


class WorkingHoursRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[WorkingHoursEntry]:
        models = self.db.query(WorkingHoursModel).order_by(
            WorkingHoursModel.station_id, WorkingHoursModel.weekday, WorkingHoursModel.shift_order
        ).all()
        return [
            WorkingHoursEntry(
                station_id=m.station_id,
                weekday=m.weekday.lower(),
                open_time=m.open_time,
                close_time=m.close_time,
                shift_order=m.shift_order or 0,
            )
            for m in models
        ]

    def save(self, entry: WorkingHoursEntry) -> None:
        self.db.add(WorkingHoursModel(
            station_id=entry.station_id,
            weekday=entry.weekday.lower(),
            open_time=entry.open_time,
            close_time=entry.close_time,
            shift_order=entry.shift_order,
        ))
        self.db.commit()

    def business_hours_for(self, day: date) -> Optional[BusinessHours]:
        model = self.db.query(BusinessHoursModel).filter(
            BusinessHoursModel.weekday == weekday_name(datetime.combine(day, time.min))
        ).first()
        if not model:
            return None
        return BusinessHours(open_time=model.open_time, close_time=model.close_time)

    def save_business_hours(self, weekday: str, hours: BusinessHours) -> None:
        existing = self.db.query(BusinessHoursModel).filter(BusinessHoursModel.weekday == weekday).first()
        if existing:
            existing.open_time = hours.open_time
            existing.close_time = hours.close_time
        else:
            self.db.add(BusinessHoursModel(weekday=weekday, open_time=hours.open_time, close_time=hours.close_time))
        self.db.commit()


class ConstraintRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, constraint_id: str) -> Optional[ScheduleConstraint]:
        model = self._get_model(constraint_id)
        if not model:
            return None
        return self._model_to_constraint(model)

    def list_for_day(self, day: date) -> List[ScheduleConstraint]:
        day_start, day_end = _day_bounds(day)
        models = (
            self.db.query(StationConstraintModel)
            .filter(StationConstraintModel.start_time < day_end, StationConstraintModel.end_time > day_start)
            .all()
        )
        return [self._model_to_constraint(m) for m in models]

    def save(self, constraint: ScheduleConstraint) -> ScheduleConstraint:
        existing = self._get_model(constraint.id)
        if existing:
            existing.station_id = constraint.station_id
            existing.start_time = constraint.start
            existing.end_time = constraint.end
            existing.is_active = constraint.is_active
            existing.reason = constraint.reason
        else:
            self.db.add(StationConstraintModel(
                id=constraint.id,
                station_id=constraint.station_id,
                start_time=constraint.start,
                end_time=constraint.end,
                is_active=constraint.is_active,
                reason=constraint.reason,
            ))
        self.db.commit()
        return constraint

    def _get_model(self, constraint_id: str) -> Optional[StationConstraintModel]:
        return self.db.query(StationConstraintModel).filter(StationConstraintModel.id == constraint_id).first()

    @staticmethod
    def _model_to_constraint(model: StationConstraintModel) -> ScheduleConstraint:
        return ScheduleConstraint(
            id=model.id,
            station_id=model.station_id,
            start=model.start_time,
            end=model.end_time,
            is_active=model.is_active,
            reason=model.reason,
        )


class SqlSchedulePersistence(SchedulePersistence):
    """SchedulePersistence over one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self.stations = StationRepository(db)
        self.appointments = AppointmentRepository(db)
        self.working_hours = WorkingHoursRepository(db)
        self.constraints = ConstraintRepository(db)

    def fetch_schedule_day(self, day: date) -> ScheduleDay:
        try:
            return ScheduleDay(
                day=day,
                stations=self.stations.list_all(),
                appointments=self.appointments.list_for_day(day),
                working_hours=self.working_hours.list_all(),
                constraints=self.constraints.list_for_day(day),
                business_hours=self.working_hours.business_hours_for(day),
            )
        except SQLAlchemyError as exc:
            logger.error(f"Failed to load schedule for {day}: {exc}")
            raise PersistenceError(f"could not load schedule for {day}") from exc

    def create_appointment(
        self,
        station_id: str,
        start: datetime,
        end: datetime,
        client_name: Optional[str] = None,
        notes: str = "",
    ) -> Appointment:
        appointment = Appointment(
            id=str(uuid.uuid4()),
            station_id=station_id,
            start=start,
            end=end,
            client_name=client_name,
            notes=notes,
        )
        return self._write(lambda: self.appointments.save(appointment))

    def move_appointment(self, appointment_id: str, station_id: str, start: datetime) -> Appointment:
        current = self._require_appointment(appointment_id)
        return self._write(lambda: self.appointments.save(current.moved_to(station_id, start)))

    def resize_appointment(self, appointment_id: str, end: datetime) -> Appointment:
        current = self._require_appointment(appointment_id)
        if end <= current.start:
            raise ConcurrentModificationError(f"appointment {appointment_id} now starts at {current.start}")
        return self._write(lambda: self.appointments.save(current.resized_to(end)))

    def resize_constraint(self, constraint_id: str, end: datetime) -> ScheduleConstraint:
        current = self.constraints.get_by_id(constraint_id)
        if current is None:
            raise ConcurrentModificationError(f"constraint {constraint_id} no longer exists")
        if end <= current.start:
            raise ConcurrentModificationError(f"constraint {constraint_id} now starts at {current.start}")
        return self._write(lambda: self.constraints.save(current.resized_to(end)))

    def move_constraint(self, constraint_id: str, station_id: str, start: datetime) -> ScheduleConstraint:
        current = self.constraints.get_by_id(constraint_id)
        if current is None:
            raise ConcurrentModificationError(f"constraint {constraint_id} no longer exists")
        return self._write(lambda: self.constraints.save(current.moved_to(station_id, start)))

    def _require_appointment(self, appointment_id: str) -> Appointment:
        current = self.appointments.get_by_id(appointment_id)
        if current is None:
            raise AppointmentNotFoundError(f"appointment {appointment_id} no longer exists")
        return current

    def _write(self, operation):
        try:
            return operation()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Write failed: {exc}")
            raise PersistenceError("write to the schedule store failed") from exc
