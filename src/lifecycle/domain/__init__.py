"""
Lifecycle Domain Layer
======================

Domain layer for the ticket lifecycle module.

Contains:
- Entities: recorded changes (StatusChange, AssignmentChange, CategoryChange)
  and the StatusHistoryEntry holding them
- Domain Services: TicketStateMachine and its transition table

This layer is framework-agnostic and contains pure business logic.
"""

from src.lifecycle.domain.entities import (
    AssignmentChange,
    CategoryChange,
    StatusChange,
    StatusHistoryEntry,
    TransitionKind,
)
from src.lifecycle.domain.state_machine import (
    TicketStateMachine,
    VALID_TRANSITIONS,
    parse_status,
)

__all__ = [
    "StatusChange",
    "AssignmentChange",
    "CategoryChange",
    "TransitionKind",
    "StatusHistoryEntry",
    "TicketStateMachine",
    "VALID_TRANSITIONS",
    "parse_status",
]
