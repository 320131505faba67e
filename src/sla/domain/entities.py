"""
SLA Domain Entities
====================

Pure Python domain entities for SLA monitoring.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from src.sla.domain.value_objects import SLAConfig


@dataclass
class SLAGroup:
    """
    Support group owning a set of tickets and their SLA durations.
    """

    id: int
    name: str
    sla_config: SLAConfig = field(default_factory=SLAConfig)
    description: Optional[str] = None

    @property
    def has_sla(self) -> bool:
        """Whether any SLA duration is configured for the group."""
        config = self.sla_config
        return any((
            config.business_hours_sla,
            config.after_hours_sla,
            config.weekend_business_sla,
            config.weekend_after_hours_sla,
        ))


@dataclass
class SweepResult:
    """
    Outcome of one breach sweep over the active tickets of a tenant.
    """

    scanned: int = 0
    flagged: int = 0
    cleared: int = 0
    failed: int = 0
    notification_failures: int = 0
    failed_ticket_ids: List[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.flagged + self.cleared

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and API responses."""
        return {
            "scanned": self.scanned,
            "flagged": self.flagged,
            "cleared": self.cleared,
            "failed": self.failed,
            "notification_failures": self.notification_failures,
            "failed_ticket_ids": list(self.failed_ticket_ids),
        }


@dataclass(frozen=True)
class BreachNotice:
    """
    Snapshot of a ticket that has just been flagged as breached.

    Handed to notifiers after the flag is committed.
    """

    ticket_id: str
    title: str
    priority: str
    status: str
    due_date: datetime
    group_id: Optional[int] = None
    assigned_to: Optional[str] = None
    tenant_id: Optional[str] = None
