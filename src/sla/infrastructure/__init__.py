"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: External service integrations (Slack, calendar watcher, scheduler)
"""

from src.sla.infrastructure.external import (
    BreachSweepScheduler,
    CalendarConfigManager,
    SlackBreachNotifier,
    calendar_from_settings,
)
from src.sla.infrastructure.models import SLAGroupModel
from src.sla.infrastructure.repositories import SQLAlchemyGroupSLARepository

__all__ = [
    "SLAGroupModel",
    "SQLAlchemyGroupSLARepository",
    "CalendarConfigManager",
    "SlackBreachNotifier",
    "BreachSweepScheduler",
    "calendar_from_settings",
]
