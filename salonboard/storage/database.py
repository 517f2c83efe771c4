from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, Time, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
from salonboard.config.settings import get_settings

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class StationModel(Base):
    __tablename__ = "stations"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    service_type = Column(String, default="grooming", nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AppointmentModel(Base):
    __tablename__ = "appointments"

    id = Column(String, primary_key=True)
    station_id = Column(String, nullable=False, index=True)
    start_at = Column(DateTime, nullable=False, index=True)  # business-local wall clock
    end_at = Column(DateTime, nullable=False)
    status = Column(String, default="confirmed", nullable=False)
    client_name = Column(String, nullable=True)
    notes = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkingHoursModel(Base):
    __tablename__ = "station_working_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    station_id = Column(String, nullable=False, index=True)
    weekday = Column(String, nullable=False)  # "monday" .. "sunday"
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)
    shift_order = Column(Integer, default=0, nullable=False)


class StationConstraintModel(Base):
    __tablename__ = "station_unavailability"

    id = Column(String, primary_key=True)
    station_id = Column(String, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class BusinessHoursModel(Base):
    __tablename__ = "business_hours"

    weekday = Column(String, primary_key=True)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
