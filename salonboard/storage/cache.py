import json
import logging
from dataclasses import asdict
from datetime import date, datetime, time
from typing import Dict, Optional

import redis

from salonboard.config.settings import get_settings
from salonboard.models.constraints import ScheduleConstraint
from salonboard.models.entities import (
    Appointment,
    BusinessHours,
    ScheduleDay,
    Station,
    WorkingHoursEntry,
)

settings = get_settings()
logger = logging.getLogger(__name__)


def snapshot_to_dict(schedule_day: ScheduleDay) -> Dict:
    return json.loads(json.dumps(asdict(schedule_day), default=lambda v: v.isoformat()))


def snapshot_from_dict(data: Dict) -> ScheduleDay:
    hours = data.get("business_hours")
    return ScheduleDay(
        day=date.fromisoformat(data["day"]),
        stations=[Station(**s) for s in data.get("stations", [])],
        appointments=[
            Appointment(**{
                **a,
                "start": datetime.fromisoformat(a["start"]),
                "end": datetime.fromisoformat(a["end"]),
            })
            for a in data.get("appointments", [])
        ],
        working_hours=[
            WorkingHoursEntry(**{
                **w,
                "open_time": time.fromisoformat(w["open_time"]),
                "close_time": time.fromisoformat(w["close_time"]),
            })
            for w in data.get("working_hours", [])
        ],
        constraints=[
            ScheduleConstraint(**{
                **c,
                "start": datetime.fromisoformat(c["start"]),
                "end": datetime.fromisoformat(c["end"]),
            })
            for c in data.get("constraints", [])
        ],
        business_hours=None if hours is None else BusinessHours(
            open_time=time.fromisoformat(hours["open_time"]),
            close_time=time.fromisoformat(hours["close_time"]),
        ),
    )


class ScheduleCache:
    """Day snapshots in Redis. Any Redis failure behaves like a miss."""

    def __init__(
        self,
        redis_url: str = settings.redis_url,
        ttl_seconds: int = settings.cache_ttl_seconds,
        enabled: bool = settings.cache_enabled,
        client=None,
    ):
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self.redis_client = client
        if self.redis_client is None and enabled:
            self.redis_client = redis.from_url(redis_url, decode_responses=True)

    @staticmethod
    def key_for(day: date) -> str:
        return f"schedule-day:{day.isoformat()}"

    def get(self, day: date) -> Optional[ScheduleDay]:
        """Cached snapshot for the day, or None on miss or failure."""
        if not self.enabled:
            return None
        try:
            cached = self.redis_client.get(self.key_for(day))
        except redis.RedisError as exc:
            logger.warning(f"Cache read failed for {day}: {exc}")
            return None
        if not cached:
            return None
        try:
            return snapshot_from_dict(json.loads(cached))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Discarding unreadable cache entry for {day}: {exc}")
            return None

    def set(self, schedule_day: ScheduleDay) -> None:
        if not self.enabled:
            return
        try:
            self.redis_client.setex(
                self.key_for(schedule_day.day),
                self.ttl_seconds,
                json.dumps(snapshot_to_dict(schedule_day)),
            )
        except redis.RedisError as exc:
            logger.warning(f"Cache write failed for {schedule_day.day}: {exc}")

    def invalidate(self, day: date) -> None:
        if not self.enabled:
            return
        try:
            self.redis_client.delete(self.key_for(day))
        except redis.RedisError as exc:
            logger.warning(f"Cache invalidation failed for {day}: {exc}")

    def health_check(self) -> bool:
        """Check Redis connection."""
        if not self.enabled:
            return False
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False
