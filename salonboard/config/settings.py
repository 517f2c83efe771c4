from datetime import time
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "SalonBoard"
    debug: bool = True
    database_url: str = Field("sqlite:///./salonboard.db", validation_alias="DATABASE_URL")
    redis_url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    interval_minutes: int = 15
    pixels_per_minute_scale: List[float] = [0.8, 1.2, 1.6, 2.0, 2.4, 2.8, 3.2]  # zoom levels 1-7
    default_scale_level: int = 3
    default_start_hour: int = 8
    default_end_hour: int = 20
    min_end_of_day: Optional[time] = None  # "HH:MM" in the environment
    max_visible_stations: int = 5
    default_appointment_minutes: Optional[int] = None
    business_timezone: str = "UTC"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
