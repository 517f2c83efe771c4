class ScheduleError(Exception):
    """Base class for scheduling board errors."""


class SlotUnavailableError(ScheduleError):
    """Requested range is not bookable on the target station."""


class UnknownStationError(ScheduleError):
    pass


class PersistenceError(ScheduleError):
    """Opaque, retryable failure of the backing store."""

    retryable = True


class ConcurrentModificationError(PersistenceError):
    """The record changed or vanished underneath the request."""


class AppointmentNotFoundError(ConcurrentModificationError):
    pass
