"""
Lifecycle Application Layer
===========================

Application layer for the ticket lifecycle module.

Contains:
- Services: StatusHistoryRecorder, TicketLifecycleService
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.lifecycle.application.dto import (
    AssignmentRequest,
    GroupChangeRequest,
    GroupChangeResponse,
    ResolutionAnalysisItem,
    ResolutionAnalysisResponse,
    ResolveRequest,
    StatusHistoryCreateRequest,
    StatusHistoryEntryResponse,
    TicketCreateRequest,
    TicketResponse,
    TransitionRequest,
    TransitionResponse,
)
from src.lifecycle.application.services import (
    IStatusHistoryRepository,
    ITicketRepository,
    StatusHistoryRecorder,
    TicketLifecycleService,
    require_actor,
)

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "TransitionRequest",
    "ResolveRequest",
    "AssignmentRequest",
    "GroupChangeRequest",
    "StatusHistoryCreateRequest",
    "TicketResponse",
    "StatusHistoryEntryResponse",
    "TransitionResponse",
    "GroupChangeResponse",
    "ResolutionAnalysisItem",
    "ResolutionAnalysisResponse",
    # Services
    "StatusHistoryRecorder",
    "TicketLifecycleService",
    "require_actor",
    # Repository Interfaces
    "ITicketRepository",
    "IStatusHistoryRepository",
]
