from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from src.sla.domain import BreachDetector

DUE = datetime(2024, 3, 20, 17, 0, tzinfo=timezone.utc)
BEFORE = datetime(2024, 3, 20, 16, 0, tzinfo=timezone.utc)
AFTER = datetime(2024, 3, 20, 18, 0, tzinfo=timezone.utc)


def ticket(status="open", due_date=DUE, resolution_time=None):
    return SimpleNamespace(status=status, due_date=due_date, resolution_time=resolution_time)


def test_no_deadline_never_breaches():
    assert not BreachDetector.is_breached(ticket(due_date=None), AFTER)


def test_active_ticket_breaches_after_deadline():
    assert not BreachDetector.is_breached(ticket(), BEFORE)
    assert BreachDetector.is_breached(ticket(), AFTER)


def test_deadline_instant_is_not_a_breach():
    assert not BreachDetector.is_breached(ticket(), DUE)


@pytest.mark.parametrize("status", ["resolved", "closed"])
def test_resolved_ticket_judged_by_resolution_time(status):
    on_time = ticket(status=status, resolution_time=BEFORE)
    late = ticket(status=status, resolution_time=AFTER)

    assert not BreachDetector.is_breached(on_time, datetime(2030, 1, 1, tzinfo=timezone.utc))
    assert BreachDetector.is_breached(late, BEFORE)


def test_resolved_without_resolution_time_uses_now():
    assert BreachDetector.is_breached(ticket(status="resolved"), AFTER)


def test_naive_due_date_is_utc():
    naive = ticket(due_date=datetime(2024, 3, 20, 17, 0))
    assert BreachDetector.is_breached(naive, AFTER)


@pytest.mark.parametrize("status, frozen", [
    ("open", False),
    ("in_progress", False),
    ("waiting", False),
    ("reopened", False),
    ("resolved", True),
    ("closed", True),
    ("cancelled", False),
])
def test_is_frozen(status, frozen):
    assert BreachDetector.is_frozen(ticket(status=status)) is frozen
