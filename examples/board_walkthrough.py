"""
Example: driving a SalonBoard day without the HTTP layer

Seeds an in-memory database, renders the board, then books, moves and
resizes appointments through the interaction controller the same way a
pointer-driven client would.
"""

from datetime import date, datetime, time

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salonboard.config.settings import get_settings
from salonboard.engine.board import ScheduleBoard
from salonboard.engine.interaction import InteractionController
from salonboard.engine.station_window import StationWindow
from salonboard.engine.timeline import offset_of, pixels_per_minute_for
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import BusinessHours, Station, WorkingHoursEntry
from salonboard.storage.database import Base
from salonboard.storage.repositories import (
    ConstraintRepository,
    SqlSchedulePersistence,
    StationRepository,
    WorkingHoursRepository,
)

DAY = date(2024, 3, 4)  # a Monday
settings = get_settings()


def at(hour, minute=0):
    return datetime.combine(DAY, time(hour, minute))


# 1. Seed stations, shifts and a lunch blackout
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
Base.metadata.create_all(bind=engine)
db = sessionmaker(bind=engine)()

for order, name in enumerate(["Alice", "Bea", "Cleo"]):
    StationRepository(db).save(Station(id=f"st-{order + 1}", name=name, display_order=order))
    WorkingHoursRepository(db).save(WorkingHoursEntry(f"st-{order + 1}", "monday", time(9), time(17)))
WorkingHoursRepository(db).save_business_hours("monday", BusinessHours(time(9), time(18)))
ConstraintRepository(db).save(ScheduleConstraint(id="lunch", station_id="st-1", start=at(12), end=at(13)))

persistence = SqlSchedulePersistence(db)

# 2. Load the board with the configured interval and zoom level
board = ScheduleBoard(
    DAY,
    interval_minutes=settings.interval_minutes,
    pixels_per_minute=pixels_per_minute_for(settings.default_scale_level, settings.pixels_per_minute_scale),
)
board.reload(persistence)
controller = InteractionController(board, persistence, settings.default_appointment_minutes)

# 3. Click at 10:00 on Bea: books the default duration
controller.pointer_down("st-2", offset_of(board.timeline, at(10)), pointer_id=1)
created = controller.pointer_up(pointer_id=1)
print(f"create: {created.status.value} {created.appointment.start:%H:%M}-{created.appointment.end:%H:%M}")

# 4. Drag it onto Alice's lunch: rejected, nothing is written
source = controller.drag_source(created.appointment.id)
source.on_start()
rejected = source.on_end(controller.drop_target("st-1"), offset_of(board.timeline, at(12)))
print(f"move into lunch: {rejected.status.value}")

# 5. Stretch it by 45 minutes with the resize handle
bottom = offset_of(board.timeline, created.appointment.end)
controller.begin_resize(created.appointment.id, pointer_id=2, y=bottom)
controller.pointer_move(bottom + 45 * board.pixels_per_minute, pointer_id=2)
resized = controller.pointer_up(pointer_id=2)
print(f"resize: {resized.status.value} now ends {resized.appointment.end:%H:%M}")

# 6. Render two columns at a time
view = board.view(StationWindow(max_visible=2))
for column in view.columns:
    free = sum(1 for s in column.slots if s.bookable and s.empty)
    print(f"{column.station.name}: {len(column.appointments)} booked, {free} free slots")
print(f"more stations to the right: {view.can_page_forward}")
