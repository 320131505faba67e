"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.dto import (
    DeadlinePreviewRequest,
    DeadlinePreviewResponse,
    SweepResultResponse,
)
from src.sla.application.services import (
    BreachSweepService,
    DeadlineService,
    IBreachNotifier,
    IBreachTicketRepository,
    ICalendarProvider,
    IGroupSLARepository,
    SessionScope,
)

__all__ = [
    # DTOs
    "DeadlinePreviewRequest",
    "DeadlinePreviewResponse",
    "SweepResultResponse",
    # Services
    "DeadlineService",
    "BreachSweepService",
    "SessionScope",
    # Repository Interfaces
    "IGroupSLARepository",
    "ICalendarProvider",
    "IBreachTicketRepository",
    "IBreachNotifier",
]
