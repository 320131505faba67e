from datetime import datetime, time, timezone

import pytest
from pydantic import ValidationError

from src.sla.domain import BusinessCalendar, SLACalculator, SLAConfig, TimeBucket


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def calendar():
    return BusinessCalendar()


@pytest.fixture
def config():
    return SLAConfig(
        business_hours_sla=480,
        after_hours_sla=240,
        weekend_business_sla=720,
        weekend_after_hours_sla=960,
        next_day_start=True
    )


@pytest.mark.parametrize("instant, bucket", [
    (utc(2024, 3, 20, 9, 0), TimeBucket.WEEKDAY_BUSINESS),
    (utc(2024, 3, 20, 17, 59), TimeBucket.WEEKDAY_BUSINESS),
    (utc(2024, 3, 20, 18, 0), TimeBucket.WEEKDAY_AFTER_HOURS),
    (utc(2024, 3, 20, 8, 59), TimeBucket.WEEKDAY_AFTER_HOURS),
    (utc(2024, 3, 23, 10, 0), TimeBucket.WEEKEND_BUSINESS),
    (utc(2024, 3, 24, 22, 0), TimeBucket.WEEKEND_AFTER_HOURS),
])
def test_classify(calendar, instant, bucket):
    assert calendar.classify(instant) == bucket


def test_business_hours_ticket_gets_business_sla(calendar, config):
    deadline = SLACalculator.calculate_deadline(utc(2024, 3, 20, 9, 0), config, calendar)
    assert deadline == utc(2024, 3, 20, 17, 0)


def test_after_hours_ticket_anchors_to_next_opening(calendar, config):
    explained = SLACalculator.explain_deadline(utc(2024, 3, 20, 20, 0), config, calendar)

    assert explained.bucket == TimeBucket.WEEKDAY_AFTER_HOURS
    assert explained.clock_started_at == utc(2024, 3, 21, 9, 0)
    assert explained.anchored
    assert explained.sla_minutes == 480
    assert explained.deadline == utc(2024, 3, 21, 17, 0)


def test_friday_evening_anchors_to_monday(calendar, config):
    deadline = SLACalculator.calculate_deadline(utc(2024, 3, 22, 20, 0), config, calendar)
    assert deadline == utc(2024, 3, 25, 17, 0)


def test_early_morning_anchors_to_same_day_opening(calendar, config):
    deadline = SLACalculator.calculate_deadline(utc(2024, 3, 20, 7, 0), config, calendar)
    assert deadline == utc(2024, 3, 20, 17, 0)


def test_weekend_after_hours_anchors_to_monday(calendar, config):
    deadline = SLACalculator.calculate_deadline(utc(2024, 3, 23, 20, 0), config, calendar)
    assert deadline == utc(2024, 3, 25, 17, 0)


def test_without_next_day_start_clock_starts_immediately(calendar, config):
    immediate = config.model_copy(update={"next_day_start": False})
    explained = SLACalculator.explain_deadline(utc(2024, 3, 20, 20, 0), immediate, calendar)

    assert not explained.anchored
    assert explained.sla_minutes == 240
    assert explained.deadline == utc(2024, 3, 21, 0, 0)


def test_weekend_business_hours_use_weekend_sla(calendar, config):
    explained = SLACalculator.explain_deadline(utc(2024, 3, 23, 10, 0), config, calendar)

    assert explained.bucket == TimeBucket.WEEKEND_BUSINESS
    assert not explained.anchored
    assert explained.deadline == utc(2024, 3, 23, 22, 0)


def test_zero_sla_deadline_is_start(calendar):
    deadline = SLACalculator.calculate_deadline(utc(2024, 3, 20, 10, 0), SLAConfig(), calendar)
    assert deadline == utc(2024, 3, 20, 10, 0)


def test_local_timezone_calendar(config):
    new_york = BusinessCalendar(timezone="America/New_York")
    # 08:00 EDT, before opening
    explained = SLACalculator.explain_deadline(utc(2024, 3, 20, 12, 0), config, new_york)

    assert explained.bucket == TimeBucket.WEEKDAY_AFTER_HOURS
    assert explained.clock_started_at == utc(2024, 3, 20, 13, 0)
    assert explained.deadline == utc(2024, 3, 20, 21, 0)


def test_naive_start_is_treated_as_utc(calendar, config):
    deadline = SLACalculator.calculate_deadline(datetime(2024, 3, 20, 9, 0), config, calendar)
    assert deadline == utc(2024, 3, 20, 17, 0)


def test_calculation_is_repeatable(calendar, config):
    start = utc(2024, 3, 20, 20, 0)
    first = SLACalculator.explain_deadline(start, config, calendar)
    second = SLACalculator.explain_deadline(start, config, calendar)
    assert first == second


def test_weekend_days_accept_names():
    calendar = BusinessCalendar(weekend_days=["Friday", "saturday"])
    assert calendar.weekend_days == frozenset({4, 5})
    assert calendar.classify(utc(2024, 3, 22, 10, 0)) == TimeBucket.WEEKEND_BUSINESS
    assert calendar.classify(utc(2024, 3, 24, 10, 0)) == TimeBucket.WEEKDAY_BUSINESS


def test_business_hours_parse_from_strings():
    calendar = BusinessCalendar(business_start="08:30", business_end="17:00")
    assert calendar.business_start == time(8, 30)
    assert calendar.business_end == time(17, 0)


@pytest.mark.parametrize("kwargs", [
    {"timezone": "Mars/Olympus_Mons"},
    {"business_start": time(18, 0), "business_end": time(9, 0)},
    {"weekend_days": ["someday"]},
    {"weekend_days": list(range(7))},
])
def test_invalid_calendar_rejected(kwargs):
    with pytest.raises(ValidationError):
        BusinessCalendar(**kwargs)


def test_negative_sla_rejected():
    with pytest.raises(ValidationError):
        SLAConfig(business_hours_sla=-1)


def test_remaining_seconds():
    due = utc(2024, 3, 20, 17, 0)
    assert SLACalculator.remaining_seconds(due, utc(2024, 3, 20, 16, 0)) == 3600
    assert SLACalculator.remaining_seconds(due, utc(2024, 3, 20, 18, 0)) == -3600
    assert SLACalculator.remaining_seconds(None, utc(2024, 3, 20, 18, 0)) is None
