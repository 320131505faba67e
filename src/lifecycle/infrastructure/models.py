"""
Lifecycle Infrastructure Models
===============================

SQLAlchemy ORM models for tickets, their history and the actors
referenced by it.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean, Float, ForeignKey, Index, Integer, JSON, String, Text, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column

from src.config import Priority, TicketStatus
from src.core import utc_now
from src.infrastructure.database import Base, UTCDateTime


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. Rows are never deleted; ``is_deleted``
    marks removed tickets.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Ticket content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketStatus.OPEN.value, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM.value)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Classification (group selects the SLA configuration)
    category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    subcategory_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    group_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True
    )

    # Timestamps and actors
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # SLA tracking
    due_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    sla_breach: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Resolution
    resolution_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_tickets_sweep", "is_deleted", "status", "due_date"),
        Index("ix_tickets_resolution_time", "resolution_time"),
    )


class StatusHistoryModel(Base):
    """
    Database model for ticket history entries.

    Maps to the 'ticket_status_history' table. Rows are inserted only.
    The autoincrement id orders entries sharing a ``changed_at``.
    """
    __tablename__ = "ticket_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)

    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)

    # Assignment changes
    previous_assignee: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    new_assignee: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Category changes
    previous_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    previous_subcategory_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_subcategory_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    previous_group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    time_in_status: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_assignment_change: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_ticket_status_history_lookup", "ticket_id", "kind", "new_status", "changed_at"),
    )


class ActorModel(Base):
    """
    Users referenced by ``changed_by``.

    Maps to the 'users' table, owned by the identity service; only the
    display name is read here.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
