from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from salonboard.engine.board import BoardView, ScheduleBoard, StationColumn
from salonboard.engine.errors import (
    AppointmentNotFoundError,
    ConcurrentModificationError,
    PersistenceError,
    ScheduleError,
    SlotUnavailableError,
    UnknownStationError,
)
from salonboard.engine.station_window import StationWindow
from salonboard.engine.timeline import pixels_per_minute_for
from salonboard.models.entities import Appointment, CardLayout
from salonboard.storage.database import get_db
from salonboard.storage.repositories import SqlSchedulePersistence
from salonboard.storage.cache import ScheduleCache
from salonboard.config.settings import get_settings

router = APIRouter()
cache = ScheduleCache()
settings = get_settings()
logger = logging.getLogger(__name__)


def to_business_local(value: datetime) -> datetime:
    """Aware datetimes are converted into the business zone; naive ones are already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.business_timezone)).replace(tzinfo=None)


class CreateAppointmentRequest(BaseModel):
    station_id: str = Field(..., min_length=1)
    start: datetime
    end: datetime
    client_name: Optional[str] = None
    notes: str = ""

    @field_validator("start", "end")
    @classmethod
    def localize(cls, v: datetime) -> datetime:
        return to_business_local(v)

    @model_validator(mode="after")
    def validate_range(self):
        """An appointment must end after it starts."""
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class MoveAppointmentRequest(BaseModel):
    station_id: str = Field(..., min_length=1)
    start: datetime

    @field_validator("start")
    @classmethod
    def localize(cls, v: datetime) -> datetime:
        return to_business_local(v)


class ResizeAppointmentRequest(BaseModel):
    end: datetime

    @field_validator("end")
    @classmethod
    def localize(cls, v: datetime) -> datetime:
        return to_business_local(v)


class AppointmentDTO(BaseModel):
    id: str
    station_id: str
    start: datetime
    end: datetime
    status: str
    client_name: Optional[str] = None
    notes: str = ""

    @classmethod
    def from_domain(cls, a: Appointment) -> "AppointmentDTO":
        return cls(
            id=a.id,
            station_id=a.station_id,
            start=a.start,
            end=a.end,
            status=a.status,
            client_name=a.client_name,
            notes=a.notes,
        )


class CardDTO(BaseModel):
    appointment: AppointmentDTO
    top: float
    height: float
    overlap_count: int
    z_index: int
    width_fraction: float

    @classmethod
    def from_domain(cls, a: Appointment, layout: CardLayout) -> "CardDTO":
        return cls(
            appointment=AppointmentDTO.from_domain(a),
            top=layout.top,
            height=layout.height,
            overlap_count=layout.overlap_count,
            z_index=layout.z_index,
            width_fraction=layout.width_fraction,
        )


class SlotStateDTO(BaseModel):
    index: int
    start: datetime
    within_working_hours: bool
    opened_by_override: bool
    blackout: bool
    bookable: bool
    empty: bool
    empty_but_restricted: bool


class ConstraintDTO(BaseModel):
    id: str
    start: datetime
    end: datetime
    is_active: bool
    reason: Optional[str] = None


class ColumnDTO(BaseModel):
    station_id: str
    name: str
    service_type: str
    cards: List[CardDTO]
    slots: List[SlotStateDTO]
    constraints: List[ConstraintDTO]

    @classmethod
    def from_domain(cls, column: StationColumn) -> "ColumnDTO":
        return cls(
            station_id=column.station.id,
            name=column.station.name,
            service_type=column.station.service_type,
            cards=[CardDTO.from_domain(a, column.layouts[a.id]) for a in column.appointments],
            slots=[SlotStateDTO(**vars(s)) for s in column.slots],
            constraints=[
                ConstraintDTO(id=c.id, start=c.start, end=c.end, is_active=c.is_active, reason=c.reason)
                for c in column.constraints
            ],
        )


class SlotDTO(BaseModel):
    offset: float
    height: float
    start: datetime
    label: str


class HourMarkerDTO(BaseModel):
    offset: float
    label: str


class TimelineDTO(BaseModel):
    start: datetime
    end: datetime
    interval_minutes: int
    pixels_per_minute: float
    height: float
    total_minutes: int
    slots: List[SlotDTO]
    hour_markers: List[HourMarkerDTO]


class StationWindowDTO(BaseModel):
    window_start: int
    column_slots: int
    station_count: int
    can_page_back: bool
    can_page_forward: bool


class BoardResponse(BaseModel):
    day: date
    timeline: TimelineDTO
    window: StationWindowDTO
    columns: List[ColumnDTO]
    cached: bool = False

    @classmethod
    def from_view(cls, day: date, view: BoardView, cached: bool) -> "BoardResponse":
        timeline = view.timeline
        return cls(
            day=day,
            timeline=TimelineDTO(
                start=timeline.start,
                end=timeline.end,
                interval_minutes=timeline.interval_minutes,
                pixels_per_minute=timeline.pixels_per_minute,
                height=timeline.height,
                total_minutes=timeline.total_minutes,
                slots=[SlotDTO(**vars(s)) for s in timeline.slots],
                hour_markers=[HourMarkerDTO(**vars(m)) for m in timeline.hour_markers],
            ),
            window=StationWindowDTO(
                window_start=view.window_start,
                column_slots=view.column_slots,
                station_count=view.station_count,
                can_page_back=view.can_page_back,
                can_page_forward=view.can_page_forward,
            ),
            columns=[ColumnDTO.from_domain(c) for c in view.columns],
            cached=cached,
        )


def get_persistence(db: Session = Depends(get_db)) -> SqlSchedulePersistence:
    return SqlSchedulePersistence(db)


def get_cache() -> ScheduleCache:
    return cache


def _http_error(exc: ScheduleError) -> HTTPException:
    if isinstance(exc, SlotUnavailableError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, AppointmentNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrentModificationError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, UnknownStationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _load_board(
    day: date,
    persistence: SqlSchedulePersistence,
    schedule_cache: Optional[ScheduleCache],
    interval: int = settings.interval_minutes,
    scale_level: int = settings.default_scale_level,
):
    """Board for a day. Writes pass no cache so validation always sees the database."""
    board = ScheduleBoard(
        day,
        interval,
        pixels_per_minute_for(scale_level, settings.pixels_per_minute_scale),
        min_end_of_day=settings.min_end_of_day,
        default_start_hour=settings.default_start_hour,
        default_end_hour=settings.default_end_hour,
    )
    snapshot = schedule_cache.get(day) if schedule_cache else None
    cached = snapshot is not None
    if snapshot is None:
        snapshot = persistence.fetch_schedule_day(day)
        if schedule_cache:
            schedule_cache.set(snapshot)
    board.apply_snapshot(snapshot)
    return board, cached


@router.get("/schedule/{day}/board", response_model=BoardResponse, summary="Render the board for a day")
def board_view(
    day: date,
    persistence: SqlSchedulePersistence = Depends(get_persistence),
    schedule_cache: ScheduleCache = Depends(get_cache),
    interval: int = Query(settings.interval_minutes, ge=1, le=240, description="Slot length in minutes"),
    scale: int = Query(settings.default_scale_level, ge=1, le=7, description="Zoom level"),
    window_start: int = Query(0, ge=0, description="Index of the first visible station"),
    service_type: Optional[str] = Query(None, description="Only stations of this service type"),
    stations: Optional[str] = Query(None, description="Comma separated station ids to show"),
    special_columns: int = Query(0, ge=0, description="Columns reserved for non-station views"),
):
    """
    Timeline, station window and per-station columns for one day.

    **Columns** carry appointment card layouts (offset, height, overlap
    stacking) and per-slot availability flags.

    **Error Handling:**
    - 503: the schedule store is unavailable
    """
    logger.info(f"Board request: day={day}, interval={interval}, scale={scale}, window_start={window_start}")
    visible_ids = [s.strip() for s in stations.split(",") if s.strip()] if stations else None
    try:
        board, cached = _load_board(day, persistence, schedule_cache, interval, scale)
    except ScheduleError as exc:
        logger.warning(f"Board load failed for {day}: {exc}")
        raise _http_error(exc)

    window = StationWindow(settings.max_visible_stations, window_start=window_start)
    view = board.view(window, service_type=service_type, visible_ids=visible_ids, special_columns=special_columns)
    return BoardResponse.from_view(day, view, cached)


@router.post("/appointments", response_model=AppointmentDTO, status_code=201, summary="Book an appointment")
def create_appointment(
    req: CreateAppointmentRequest,
    persistence: SqlSchedulePersistence = Depends(get_persistence),
    schedule_cache: ScheduleCache = Depends(get_cache),
):
    """
    Create an appointment after checking the range is bookable.

    **Error Handling:**
    - 400: unknown or inactive station
    - 422: range is outside working hours, blacked out, or outside the day
    - 503: the schedule store is unavailable
    """
    logger.info(f"Create request: station={req.station_id}, {req.start} - {req.end}")
    day = req.start.date()
    try:
        board, _ = _load_board(day, persistence, None)
        board.check_create(req.station_id, req.start, req.end)
        created = persistence.create_appointment(
            req.station_id, req.start, req.end, client_name=req.client_name, notes=req.notes
        )
    except ScheduleError as exc:
        logger.info(f"Create rejected: {exc}")
        raise _http_error(exc)

    schedule_cache.invalidate(day)
    logger.info(f"Appointment {created.id} created")
    return AppointmentDTO.from_domain(created)


@router.patch("/appointments/{appointment_id}/move", response_model=AppointmentDTO, summary="Move an appointment")
def move_appointment(
    appointment_id: str,
    req: MoveAppointmentRequest,
    persistence: SqlSchedulePersistence = Depends(get_persistence),
    schedule_cache: ScheduleCache = Depends(get_cache),
):
    """
    Move an appointment to another station and/or start time, keeping its duration.

    Moves stay within the appointment's day; a start outside that day's
    timeline is rejected as unbookable.

    **Error Handling:**
    - 400: unknown or inactive target station
    - 404: appointment does not exist
    - 422: target range is not bookable
    """
    logger.info(f"Move request: {appointment_id} -> station={req.station_id}, start={req.start}")
    try:
        current = persistence.appointments.get_by_id(appointment_id)
        if current is None:
            raise AppointmentNotFoundError(f"appointment {appointment_id} not found")
        board, _ = _load_board(current.start.date(), persistence, None)
        board.check_move(appointment_id, req.station_id, req.start)
        moved = persistence.move_appointment(appointment_id, req.station_id, req.start)
    except ScheduleError as exc:
        logger.info(f"Move rejected: {exc}")
        raise _http_error(exc)

    schedule_cache.invalidate(current.start.date())
    logger.info(f"Appointment {appointment_id} moved to {moved.station_id} at {moved.start}")
    return AppointmentDTO.from_domain(moved)


@router.patch("/appointments/{appointment_id}/resize", response_model=AppointmentDTO, summary="Resize an appointment")
def resize_appointment(
    appointment_id: str,
    req: ResizeAppointmentRequest,
    persistence: SqlSchedulePersistence = Depends(get_persistence),
    schedule_cache: ScheduleCache = Depends(get_cache),
):
    """
    Change an appointment's end time. Only an extension has to be bookable.

    **Error Handling:**
    - 404: appointment does not exist
    - 422: new end is not after the start, or the extension is not bookable
    """
    logger.info(f"Resize request: {appointment_id} -> end={req.end}")
    try:
        current = persistence.appointments.get_by_id(appointment_id)
        if current is None:
            raise AppointmentNotFoundError(f"appointment {appointment_id} not found")
        board, _ = _load_board(current.start.date(), persistence, None)
        board.check_resize(appointment_id, req.end)
        resized = persistence.resize_appointment(appointment_id, req.end)
    except ScheduleError as exc:
        logger.info(f"Resize rejected: {exc}")
        raise _http_error(exc)

    schedule_cache.invalidate(current.start.date())
    logger.info(f"Appointment {appointment_id} now ends at {resized.end}")
    return AppointmentDTO.from_domain(resized)
