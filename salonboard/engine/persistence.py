from abc import ABC, abstractmethod
from datetime import date, datetime

from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import Appointment, ScheduleDay


class SchedulePersistence(ABC):
    """
    Backing store seen by the board.

    Implementations raise PersistenceError (or a subclass) on failure; the
    board treats every failure as retryable and never as fatal.
    """

    @abstractmethod
    def fetch_schedule_day(self, day: date) -> ScheduleDay:
        pass

    @abstractmethod
    def create_appointment(self, station_id: str, start: datetime, end: datetime) -> Appointment:
        pass

    @abstractmethod
    def move_appointment(self, appointment_id: str, station_id: str, start: datetime) -> Appointment:
        pass

    @abstractmethod
    def resize_appointment(self, appointment_id: str, end: datetime) -> Appointment:
        pass

    @abstractmethod
    def resize_constraint(self, constraint_id: str, end: datetime) -> ScheduleConstraint:
        pass

    @abstractmethod
    def move_constraint(self, constraint_id: str, station_id: str, start: datetime) -> ScheduleConstraint:
        pass
