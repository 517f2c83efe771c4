"""
Interaction Controller

Pointer-gesture state machine for one board:

    Idle -> DraggingCreate     -> Idle   (drag on an empty slot)
    Idle -> MovingAppointment  -> Idle   (DragSource / DropTarget)
    Idle -> Resizing           -> Idle   (appointment resize handle)
    Idle -> ConstraintResizing -> Idle   (constraint resize handle)
    Idle -> MovingConstraint   -> Idle   (constraint block DragSource)

Exactly one gesture is active at a time. Pointer coordinates are pixel
offsets from the top of a station column; they are converted to times
through the board's timeline and snapped to its slot grid.

A finalized gesture becomes an intent: it is checked against availability
locally (unbookable intents are dropped without any call), applied
optimistically to the board, sent to the persistence layer, and rolled
back if that call fails. Failures are never retried here; the next
reload is authoritative.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Union

from salonboard.engine.board import ScheduleBoard
from salonboard.engine.errors import PersistenceError
from salonboard.engine.persistence import SchedulePersistence
from salonboard.engine.timeline import round_minutes, slot_index_at, snap_to_interval, time_at_offset
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import Appointment

logger = logging.getLogger(__name__)

PENDING_PREFIX = "pending-"


class GestureStatus(str, Enum):
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"
    NOOP = "noop"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CreateIntent:
    station_id: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class MoveIntent:
    appointment_id: str
    station_id: str
    start: datetime


@dataclass(frozen=True)
class ResizeIntent:
    appointment_id: str
    end: datetime


@dataclass(frozen=True)
class ConstraintResizeIntent:
    constraint_id: str
    end: datetime


@dataclass(frozen=True)
class ConstraintMoveIntent:
    constraint_id: str
    station_id: str
    start: datetime


Intent = Union[CreateIntent, MoveIntent, ResizeIntent, ConstraintResizeIntent, ConstraintMoveIntent]


@dataclass
class IntentOutcome:
    status: GestureStatus
    intent: Optional[Intent] = None
    appointment: Optional[Appointment] = None
    constraint: Optional[ScheduleConstraint] = None
    error: Optional[PersistenceError] = None

    @property
    def retryable(self) -> bool:
        return self.status == GestureStatus.FAILED


# States -----------------------------------------------------------------

@dataclass(frozen=True)
class Idle:
    pass


IDLE = Idle()


@dataclass
class DraggingCreate:
    station_id: str
    anchor_time: datetime
    start_time: datetime
    end_time: datetime
    pointer_origin_y: float
    current_y: float
    pointer_id: Optional[int] = None


@dataclass
class MovingAppointment:
    appointment: Appointment
    hover_station_id: Optional[str] = None
    hover_start: Optional[datetime] = None


@dataclass
class Resizing:
    appointment: Appointment
    pointer_id: int
    start_y: float
    initial_end: datetime
    current_end: datetime


@dataclass
class ConstraintResizing:
    constraint: ScheduleConstraint
    pointer_id: int
    start_y: float
    initial_end: datetime
    current_end: datetime


@dataclass
class MovingConstraint:
    constraint: ScheduleConstraint
    hover_station_id: Optional[str] = None
    hover_start: Optional[datetime] = None


InteractionState = Union[Idle, DraggingCreate, MovingAppointment, Resizing, ConstraintResizing, MovingConstraint]


# Drag capabilities --------------------------------------------------------

@dataclass(frozen=True)
class DropTarget:
    id: str
    accepts: Callable[[str], bool]
    on_drop: Callable[[str, float], IntentOutcome]


@dataclass(frozen=True)
class DragSource:
    id: str
    on_start: Callable[[], bool]
    on_move: Callable[[Optional[str], float], None]
    on_end: Callable[[Optional[DropTarget], float], Optional[IntentOutcome]]


class InteractionController:
    def __init__(
        self,
        board: ScheduleBoard,
        persistence: SchedulePersistence,
        default_duration_minutes: Optional[int] = None,
    ):
        self.board = board
        self.persistence = persistence
        self.default_duration_minutes = default_duration_minutes
        self.state: InteractionState = IDLE
        self.interaction_blocked = False

    @property
    def is_idle(self) -> bool:
        return isinstance(self.state, Idle)

    @property
    def interval(self) -> timedelta:
        return timedelta(minutes=self.board.interval_minutes)

    def _can_start(self) -> bool:
        return self.is_idle and not self.interaction_blocked

    def _reset(self) -> None:
        self.state = IDLE

    # Cancellation ---------------------------------------------------------

    def set_interaction_blocked(self, blocked: bool) -> None:
        """A popover or sheet is open: drop the current gesture and refuse new ones."""
        self.interaction_blocked = blocked
        if blocked and not self.is_idle:
            logger.debug(f"Interaction blocked, abandoning {type(self.state).__name__}")
            self._reset()

    def cancel(self) -> Optional[IntentOutcome]:
        if self.is_idle:
            return None
        self._reset()
        return IntentOutcome(GestureStatus.CANCELLED)

    def column_unmounted(self, station_id: str) -> None:
        state = self.state
        if isinstance(state, DraggingCreate):
            affected = state.station_id == station_id
        elif isinstance(state, MovingAppointment):
            affected = station_id in (state.appointment.station_id, state.hover_station_id)
        elif isinstance(state, MovingConstraint):
            affected = station_id in (state.constraint.station_id, state.hover_station_id)
        elif isinstance(state, Resizing):
            affected = state.appointment.station_id == station_id
        elif isinstance(state, ConstraintResizing):
            affected = state.constraint.station_id == station_id
        else:
            affected = False
        if affected:
            self._reset()

    # Pointer events ------------------------------------------------------

    def pointer_down(self, station_id: str, y: float, pointer_id: Optional[int] = None) -> bool:
        """Start drag-to-create on the slot under `y`; False when the press is ignored."""
        if not self._can_start():
            return False
        station = self.board.station(station_id)
        if station is None or not station.is_active:
            return False

        timeline = self.board.timeline
        index = slot_index_at(timeline, y)
        if index is None:
            return False
        slot_time = timeline.slot_start(index)
        resolver = self.board.resolver
        if not resolver.is_bookable(slot_time, station_id):
            return False
        if resolver.is_slot_occupied(slot_time, self.board.appointments_for(station_id)):
            return False

        self.state = DraggingCreate(
            station_id=station_id,
            anchor_time=slot_time,
            start_time=slot_time,
            end_time=slot_time + self.interval,
            pointer_origin_y=y,
            current_y=y,
            pointer_id=pointer_id,
        )
        return True

    def pointer_move(self, y: float, pointer_id: Optional[int] = None) -> None:
        state = self.state
        if isinstance(state, DraggingCreate):
            if pointer_id is not None and state.pointer_id is not None and pointer_id != state.pointer_id:
                return
            self._drag_create_to(state, y)
        elif isinstance(state, (Resizing, ConstraintResizing)):
            if pointer_id != state.pointer_id:
                return
            state.current_end = self._resize_candidate(state.start_y, y, self._resize_start(state), state.initial_end)

    def pointer_up(self, pointer_id: Optional[int] = None) -> Optional[IntentOutcome]:
        """Finalize the active pointer gesture; None for stale or foreign events."""
        state = self.state
        if isinstance(state, DraggingCreate):
            if pointer_id is not None and state.pointer_id is not None and pointer_id != state.pointer_id:
                return None
            self._reset()
            return self._finish_create(state)
        if isinstance(state, (Resizing, ConstraintResizing)):
            if pointer_id != state.pointer_id:
                return None
            self._reset()
            if isinstance(state, Resizing):
                return self._finish_resize(state)
            return self._finish_constraint_resize(state)
        return None

    # Drag to create --------------------------------------------------------

    def _clamp_to_timeline(self, moment: datetime) -> datetime:
        timeline = self.board.timeline
        return min(max(moment, timeline.start), timeline.end)

    def _snapped_time_at(self, y: float) -> datetime:
        """Pointer offset to a time on the timeline's slot grid."""
        timeline = self.board.timeline
        return snap_to_interval(time_at_offset(timeline, y), self.board.interval_minutes, origin=timeline.start)

    def _drag_create_to(self, state: DraggingCreate, y: float) -> None:
        current = self._clamp_to_timeline(self._snapped_time_at(y))
        anchor_end = state.anchor_time + self.interval

        if current >= state.anchor_time:
            state.start_time = state.anchor_time
            state.end_time = max(current, anchor_end)
        else:
            # Dragging above the pressed slot keeps that slot in the range
            state.start_time = current
            state.end_time = anchor_end
        state.current_y = y

    def _finish_create(self, state: DraggingCreate) -> IntentOutcome:
        start, end = state.start_time, state.end_time
        if state.current_y == state.pointer_origin_y:
            minutes = self.default_duration_minutes or self.board.interval_minutes
            start, end = state.anchor_time, state.anchor_time + timedelta(minutes=minutes)

        intent = CreateIntent(station_id=state.station_id, start=start, end=end)
        if not self.board.is_range_bookable(state.station_id, start, end):
            logger.info(f"Create on {state.station_id} {start:%H:%M}-{end:%H:%M} rejected: not bookable")
            return IntentOutcome(GestureStatus.REJECTED, intent)

        placeholder = Appointment(
            id=f"{PENDING_PREFIX}{uuid.uuid4().hex}",
            station_id=state.station_id,
            start=start,
            end=end,
            status="pending",
        )
        return self._commit_appointment(
            intent,
            placeholder,
            lambda: self.persistence.create_appointment(state.station_id, start, end),
        )

    # Move -----------------------------------------------------------------

    def is_drag_enabled(self, appointment_id: str) -> bool:
        """Cards stay put while their own resize is running."""
        state = self.state
        if isinstance(state, Resizing) and state.appointment.id == appointment_id:
            return False
        return self.board.appointment(appointment_id) is not None

    def drag_source(self, appointment_id: str) -> DragSource:
        def on_end(target: Optional[DropTarget], y: float) -> Optional[IntentOutcome]:
            if not self._is_moving(appointment_id):
                return None
            if target is None or not target.accepts(appointment_id):
                return self.cancel()
            return target.on_drop(appointment_id, y)

        return DragSource(
            id=appointment_id,
            on_start=lambda: self._begin_move(appointment_id),
            on_move=lambda station_id, y: self._hover_move(appointment_id, station_id, y),
            on_end=on_end,
        )

    def drop_target(self, station_id: str) -> DropTarget:
        return DropTarget(
            id=station_id,
            accepts=lambda source_id: self._accepts_drop(station_id, source_id),
            on_drop=lambda source_id, y: self._drop(source_id, station_id, y),
        )

    def _is_moving(self, appointment_id: str) -> bool:
        return isinstance(self.state, MovingAppointment) and self.state.appointment.id == appointment_id

    def _begin_move(self, appointment_id: str) -> bool:
        if not self._can_start() or not self.is_drag_enabled(appointment_id):
            return False
        self.state = MovingAppointment(appointment=self.board.appointment(appointment_id))
        return True

    def _hover_move(self, appointment_id: str, station_id: Optional[str], y: float) -> None:
        if not self._is_moving(appointment_id):
            return
        self.state.hover_station_id = station_id
        self.state.hover_start = None
        if station_id is not None:
            self.state.hover_start = self._snapped_time_at(y)

    def _accepts_drop(self, station_id: str, source_id: str) -> bool:
        target = self.board.station(station_id)
        if target is None or not target.is_active:
            return False
        if self._is_moving_constraint(source_id):
            return True
        if not self._is_moving(source_id):
            return False
        origin = self.board.station(self.state.appointment.station_id)
        return origin is None or origin.service_type == target.service_type

    def _drop(self, source_id: str, station_id: str, y: float) -> IntentOutcome:
        if self._is_moving_constraint(source_id):
            return self._drop_constraint(source_id, station_id, y)
        if not self._is_moving(source_id):
            return IntentOutcome(GestureStatus.NOOP)
        appointment_id = source_id
        appointment = self.state.appointment
        self._reset()

        start = self._snapped_time_at(y)
        intent = MoveIntent(appointment_id=appointment_id, station_id=station_id, start=start)
        if station_id == appointment.station_id and start == appointment.start:
            return IntentOutcome(GestureStatus.NOOP, intent)

        moved = appointment.moved_to(station_id, start)
        if not self.board.is_range_bookable(station_id, moved.start, moved.end):
            logger.info(f"Move of {appointment_id} to {station_id} {start:%H:%M} rejected: not bookable")
            return IntentOutcome(GestureStatus.REJECTED, intent)

        return self._commit_appointment(
            intent,
            moved,
            lambda: self.persistence.move_appointment(appointment_id, station_id, start),
        )

    # Constraint move --------------------------------------------------------

    def is_constraint_drag_enabled(self, constraint_id: str) -> bool:
        state = self.state
        if isinstance(state, ConstraintResizing) and state.constraint.id == constraint_id:
            return False
        return self.board.constraint(constraint_id) is not None

    def constraint_drag_source(self, constraint_id: str) -> DragSource:
        """Drag a constraint block to another column or time; it keeps its duration."""
        def on_end(target: Optional[DropTarget], y: float) -> Optional[IntentOutcome]:
            if not self._is_moving_constraint(constraint_id):
                return None
            if target is None or not target.accepts(constraint_id):
                return self.cancel()
            return target.on_drop(constraint_id, y)

        return DragSource(
            id=constraint_id,
            on_start=lambda: self._begin_constraint_move(constraint_id),
            on_move=lambda station_id, y: self._hover_constraint(constraint_id, station_id, y),
            on_end=on_end,
        )

    def _is_moving_constraint(self, constraint_id: str) -> bool:
        return isinstance(self.state, MovingConstraint) and self.state.constraint.id == constraint_id

    def _begin_constraint_move(self, constraint_id: str) -> bool:
        if not self._can_start() or not self.is_constraint_drag_enabled(constraint_id):
            return False
        self.state = MovingConstraint(constraint=self.board.constraint(constraint_id))
        return True

    def _hover_constraint(self, constraint_id: str, station_id: Optional[str], y: float) -> None:
        if not self._is_moving_constraint(constraint_id):
            return
        self.state.hover_station_id = station_id
        self.state.hover_start = self._snapped_time_at(y) if station_id is not None else None

    def _drop_constraint(self, constraint_id: str, station_id: str, y: float) -> IntentOutcome:
        constraint = self.state.constraint
        self._reset()

        start = self._snapped_time_at(y)
        intent = ConstraintMoveIntent(constraint_id=constraint_id, station_id=station_id, start=start)
        if station_id == constraint.station_id and start == constraint.start:
            return IntentOutcome(GestureStatus.NOOP, intent)
        timeline = self.board.timeline
        if timeline.is_empty or start < timeline.start or start >= timeline.end:
            logger.info(f"Move of constraint {constraint_id} to {start:%H:%M} rejected: outside the day")
            return IntentOutcome(GestureStatus.REJECTED, intent)

        return self._commit_constraint(
            intent,
            constraint.moved_to(station_id, start),
            lambda: self.persistence.move_constraint(constraint_id, station_id, start),
        )

    # Resize ---------------------------------------------------------------

    def begin_resize(self, appointment_id: str, pointer_id: int, y: float) -> bool:
        if not self._can_start():
            return False
        appointment = self.board.appointment(appointment_id)
        if appointment is None:
            return False
        self.state = Resizing(
            appointment=appointment,
            pointer_id=pointer_id,
            start_y=y,
            initial_end=appointment.end,
            current_end=appointment.end,
        )
        return True

    def begin_constraint_resize(self, constraint_id: str, pointer_id: int, y: float) -> bool:
        if not self._can_start():
            return False
        constraint = self.board.constraint(constraint_id)
        if constraint is None:
            return False
        self.state = ConstraintResizing(
            constraint=constraint,
            pointer_id=pointer_id,
            start_y=y,
            initial_end=constraint.end,
            current_end=constraint.end,
        )
        return True

    @staticmethod
    def _resize_start(state: Union[Resizing, ConstraintResizing]) -> datetime:
        if isinstance(state, Resizing):
            return state.appointment.start
        return state.constraint.start

    def _resize_candidate(self, start_y: float, y: float, start: datetime, initial_end: datetime) -> datetime:
        interval_minutes = self.board.interval_minutes
        delta_minutes = (y - start_y) / self.board.pixels_per_minute
        snapped_delta = round_minutes(delta_minutes, interval_minutes)

        base_minutes = max(interval_minutes, (initial_end - start).total_seconds() / 60)
        duration = max(interval_minutes, round_minutes(base_minutes + snapped_delta, interval_minutes))
        candidate = start + timedelta(minutes=duration)

        minimum_end = start + self.interval
        return max(min(candidate, self.board.timeline.end), minimum_end)

    def _finish_resize(self, state: Resizing) -> IntentOutcome:
        appointment = state.appointment
        intent = ResizeIntent(appointment_id=appointment.id, end=state.current_end)
        if state.current_end == state.initial_end:
            return IntentOutcome(GestureStatus.NOOP, intent)
        if state.current_end > state.initial_end and not self.board.is_range_bookable(
            appointment.station_id, state.initial_end, state.current_end
        ):
            logger.info(f"Resize of {appointment.id} to {state.current_end:%H:%M} rejected: not bookable")
            return IntentOutcome(GestureStatus.REJECTED, intent)

        current = self.board.appointment(appointment.id) or appointment
        return self._commit_appointment(
            intent,
            current.resized_to(state.current_end),
            lambda: self.persistence.resize_appointment(appointment.id, state.current_end),
        )

    def _finish_constraint_resize(self, state: ConstraintResizing) -> IntentOutcome:
        constraint = state.constraint
        intent = ConstraintResizeIntent(constraint_id=constraint.id, end=state.current_end)
        if state.current_end == state.initial_end:
            return IntentOutcome(GestureStatus.NOOP, intent)

        return self._commit_constraint(
            intent,
            constraint.resized_to(state.current_end),
            lambda: self.persistence.resize_constraint(constraint.id, state.current_end),
        )

    # Commit ---------------------------------------------------------------

    def _commit_constraint(
        self,
        intent: Intent,
        optimistic: ScheduleConstraint,
        save: Callable[[], ScheduleConstraint],
    ) -> IntentOutcome:
        previous = self.board.stage_constraint(optimistic)
        try:
            saved = save()
        except PersistenceError as exc:
            self.board.restore_constraint(optimistic.id, previous)
            logger.warning(f"{type(intent).__name__} of constraint {optimistic.id} failed, rolled back: {exc}")
            return IntentOutcome(GestureStatus.FAILED, intent, error=exc)
        self.board.stage_constraint(saved)
        return IntentOutcome(GestureStatus.COMMITTED, intent, constraint=saved)

    def _commit_appointment(
        self,
        intent: Intent,
        optimistic: Appointment,
        save: Callable[[], Appointment],
    ) -> IntentOutcome:
        previous = self.board.stage_appointment(optimistic)
        try:
            saved = save()
        except PersistenceError as exc:
            self.board.restore_appointment(optimistic.id, previous)
            logger.warning(f"{type(intent).__name__} failed, rolled back: {exc}")
            return IntentOutcome(GestureStatus.FAILED, intent, error=exc)

        if saved.id != optimistic.id:
            self.board.discard_appointment(optimistic.id)
        self.board.stage_appointment(saved)
        logger.info(f"{type(intent).__name__} committed for appointment {saved.id}")
        return IntentOutcome(GestureStatus.COMMITTED, intent, appointment=saved)
