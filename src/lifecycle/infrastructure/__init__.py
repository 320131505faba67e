"""
Lifecycle Infrastructure Layer
==============================

- Models: SQLAlchemy ORM models (tickets, history, users)
- Repositories: Data access layer
"""

from src.lifecycle.infrastructure.models import ActorModel, StatusHistoryModel, TicketModel
from src.lifecycle.infrastructure.repositories import (
    SQLAlchemyStatusHistoryRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "TicketModel",
    "StatusHistoryModel",
    "ActorModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyStatusHistoryRepository",
]
