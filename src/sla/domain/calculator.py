"""
SLA Calculations
================

Pure functions for deadline and breach calculations.

Nothing in this module reads the wall clock: the start instant and the
evaluation instant are always explicit parameters.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from src.config import RESOLVED_STATUSES
from src.core.clock import ensure_utc
from src.sla.domain.value_objects import BusinessCalendar, SLAConfig, SLADeadline


class SLACalculator:
    """
    Stateless deadline calculator driven by a group's SLA configuration
    and the tenant business calendar.
    """

    @staticmethod
    def explain_deadline(
        start_instant: datetime,
        sla_config: SLAConfig,
        calendar: BusinessCalendar
    ) -> SLADeadline:
        """
        Derive a deadline together with the bucket and clock anchor used.

        After-hours arrivals on a group with ``next_day_start`` have their
        clock moved to the next business-day opening and receive the
        business hours duration from there.
        """
        start = ensure_utc(start_instant)
        bucket = calendar.classify(start)

        if not bucket.is_business_hours and sla_config.next_day_start:
            clock_start = calendar.next_business_opening(start)
            minutes = sla_config.business_hours_sla
        else:
            clock_start = start
            minutes = sla_config.minutes_for(bucket)

        return SLADeadline(
            start=start,
            bucket=bucket,
            clock_started_at=clock_start,
            sla_minutes=minutes,
            deadline=clock_start + timedelta(minutes=minutes)
        )

    @staticmethod
    def calculate_deadline(
        start_instant: datetime,
        sla_config: SLAConfig,
        calendar: BusinessCalendar
    ) -> datetime:
        """
        Calculate the SLA deadline for a ticket.

        Args:
            start_instant: When the SLA clock nominally starts (ticket creation)
            sla_config: Durations of the ticket's group
            calendar: Tenant business calendar

        Returns:
            The deadline as an aware UTC datetime
        """
        return SLACalculator.explain_deadline(start_instant, sla_config, calendar).deadline

    @staticmethod
    def remaining_seconds(due_date: Optional[datetime], now: datetime) -> Optional[float]:
        """Seconds left until the deadline, negative once passed."""
        if due_date is None:
            return None
        return (ensure_utc(due_date) - ensure_utc(now)).total_seconds()


class BreachDetector:
    """Derives the SLA breach flag of a ticket."""

    @staticmethod
    def reference_instant(ticket: Any, now: datetime) -> datetime:
        """
        Instant compared against the deadline.

        Resolved and closed tickets are judged by their frozen resolution
        time; everything else by ``now``.
        """
        status = getattr(ticket, "status", None)
        resolution_time = getattr(ticket, "resolution_time", None)

        if status in RESOLVED_STATUSES and resolution_time is not None:
            return ensure_utc(resolution_time)
        return ensure_utc(now)

    @staticmethod
    def is_breached(ticket: Any, now: datetime) -> bool:
        """
        Check whether a ticket has exceeded its SLA deadline.

        Args:
            ticket: Any object exposing ``due_date``, ``status`` and
                ``resolution_time``
            now: Evaluation instant

        Returns:
            False when the ticket has no deadline, otherwise whether the
            reference instant is strictly after the deadline
        """
        due_date = getattr(ticket, "due_date", None)
        if due_date is None:
            return False
        return BreachDetector.reference_instant(ticket, now) > ensure_utc(due_date)

    @staticmethod
    def is_frozen(ticket: Any) -> bool:
        """Whether the breach flag no longer depends on the current time."""
        return getattr(ticket, "status", None) in RESOLVED_STATUSES
