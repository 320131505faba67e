"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import FrozenSet
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.clock import ensure_utc

WEEKDAY_NAMES = [
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday"
]


class TimeBucket(str, Enum):
    """Calendar classification of an instant."""
    WEEKDAY_BUSINESS = "weekday_business"
    WEEKDAY_AFTER_HOURS = "weekday_after_hours"
    WEEKEND_BUSINESS = "weekend_business"
    WEEKEND_AFTER_HOURS = "weekend_after_hours"

    @property
    def is_business_hours(self) -> bool:
        return self in (TimeBucket.WEEKDAY_BUSINESS, TimeBucket.WEEKEND_BUSINESS)

    @property
    def is_weekend(self) -> bool:
        return self in (TimeBucket.WEEKEND_BUSINESS, TimeBucket.WEEKEND_AFTER_HOURS)


class SLAConfig(BaseModel):
    """
    SLA durations attached to a group, in minutes.

    Exactly one duration applies to a given instant, selected by the
    business calendar bucket of that instant.
    """
    model_config = ConfigDict(frozen=True)

    business_hours_sla: int = Field(default=0, ge=0, description="Weekday business hours SLA")
    after_hours_sla: int = Field(default=0, ge=0, description="Weekday after hours SLA")
    weekend_business_sla: int = Field(default=0, ge=0, description="Weekend business hours SLA")
    weekend_after_hours_sla: int = Field(default=0, ge=0, description="Weekend after hours SLA")
    next_day_start: bool = Field(
        default=False,
        description="Start the clock at the next business opening for after-hours arrivals"
    )

    def minutes_for(self, bucket: TimeBucket) -> int:
        """Get the SLA duration that applies to a calendar bucket."""
        return {
            TimeBucket.WEEKDAY_BUSINESS: self.business_hours_sla,
            TimeBucket.WEEKDAY_AFTER_HOURS: self.after_hours_sla,
            TimeBucket.WEEKEND_BUSINESS: self.weekend_business_sla,
            TimeBucket.WEEKEND_AFTER_HOURS: self.weekend_after_hours_sla,
        }[bucket]


class BusinessCalendar(BaseModel):
    """
    Tenant business calendar.

    Business hours are the half-open local window [business_start,
    business_end). Weekend days use Python weekday numbers (Monday = 0).
    """
    model_config = ConfigDict(frozen=True)

    business_start: time = Field(default=time(9, 0))
    business_end: time = Field(default=time(18, 0))
    weekend_days: FrozenSet[int] = Field(default=frozenset({5, 6}))
    timezone: str = Field(default="UTC")

    @field_validator("weekend_days", mode="before")
    @classmethod
    def parse_weekend_days(cls, v):
        """Accept weekday names as well as weekday numbers."""
        days = set()
        for day in v or []:
            if isinstance(day, str) and not day.isdigit():
                name = day.strip().lower()
                if name not in WEEKDAY_NAMES:
                    raise ValueError(f"unknown weekday: {day}")
                days.add(WEEKDAY_NAMES.index(name))
            else:
                number = int(day)
                if not 0 <= number <= 6:
                    raise ValueError(f"weekday number out of range: {day}")
                days.add(number)
        if len(days) == 7:
            raise ValueError("at least one day must be a business day")
        return frozenset(days)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "BusinessCalendar":
        if self.business_start >= self.business_end:
            raise ValueError("business_start must be before business_end")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def to_local(self, instant: datetime) -> datetime:
        """Express an instant in the calendar's local time."""
        return ensure_utc(instant).astimezone(self.tzinfo)

    def is_weekend_day(self, day: date) -> bool:
        return day.weekday() in self.weekend_days

    def is_business_hours(self, instant: datetime) -> bool:
        local_time = self.to_local(instant).time()
        return self.business_start <= local_time < self.business_end

    def classify(self, instant: datetime) -> TimeBucket:
        """Classify an instant into one of the four SLA buckets."""
        local = self.to_local(instant)
        in_hours = self.business_start <= local.time() < self.business_end

        if self.is_weekend_day(local.date()):
            return TimeBucket.WEEKEND_BUSINESS if in_hours else TimeBucket.WEEKEND_AFTER_HOURS
        return TimeBucket.WEEKDAY_BUSINESS if in_hours else TimeBucket.WEEKDAY_AFTER_HOURS

    def next_business_opening(self, instant: datetime) -> datetime:
        """
        Get the next opening instant on a business (non-weekend) day.

        Returns the same day's opening when the instant is before it.
        The result is expressed in UTC.
        """
        local = self.to_local(instant)
        day = local.date()

        if self.is_weekend_day(day) or local.time() >= self.business_start:
            day += timedelta(days=1)
        while self.is_weekend_day(day):
            day += timedelta(days=1)

        opening = datetime.combine(day, self.business_start, tzinfo=self.tzinfo)
        return opening.astimezone(timezone.utc)


@dataclass(frozen=True)
class SLADeadline:
    """
    Immutable value object describing how a deadline was derived.
    """
    start: datetime
    bucket: TimeBucket
    clock_started_at: datetime
    sla_minutes: int
    deadline: datetime

    @property
    def anchored(self) -> bool:
        """Whether the clock was moved to the next business opening."""
        return self.clock_started_at != self.start

    def remaining_seconds(self, now: datetime) -> float:
        """Seconds until the deadline (negative if past)."""
        return (self.deadline - ensure_utc(now)).total_seconds()

