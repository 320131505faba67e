"""
Lifecycle Application DTOs
==========================

Data Transfer Objects for the ticket lifecycle API.

Fields whose absence must be reported as a validation error of the
operation itself (actor, new status, resolution notes) are optional here
and checked by the services.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.lifecycle.domain import (
    AssignmentChange,
    CategoryChange,
    StatusHistoryEntry,
)

PriorityStr = Literal["low", "medium", "high", "urgent"]
TicketStatusStr = Literal[
    "open", "in_progress", "waiting", "pending",
    "resolved", "closed", "cancelled", "reopened"
]
ChangeKindStr = Literal["status_change", "assignment_change", "category_change"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for creating a ticket."""
    title: str = Field(..., min_length=1, max_length=500, description="Ticket title")
    description: Optional[str] = Field(None, description="Ticket description")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    assigned_to: Optional[str] = Field(None, description="Assignee user id")
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    group_id: Optional[int] = Field(None, description="Group whose SLA configuration applies")
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, description="Creating user id")


class TransitionRequest(BaseModel):
    """Request model for a status transition."""
    new_status: Optional[str] = Field(None, description="Target status")
    changed_by: Optional[str] = Field(None, description="Acting user id")


class ResolveRequest(BaseModel):
    """Request model for resolving a ticket."""
    resolution_notes: Optional[str] = Field(None, description="How the ticket was resolved")
    resolved_by: Optional[str] = Field(None, description="Resolving user id")
    tags: Optional[List[str]] = Field(None, description="Replaces the ticket's tags when given")


class AssignmentRequest(BaseModel):
    """Request model for reassigning a ticket; null unassigns it."""
    assigned_to: Optional[str] = Field(None, description="New assignee user id")
    changed_by: Optional[str] = Field(None, description="Acting user id")


class GroupChangeRequest(BaseModel):
    """Request model for moving a ticket to another category or group."""
    group_id: Optional[int] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    changed_by: Optional[str] = Field(None, description="Acting user id")


class StatusHistoryCreateRequest(BaseModel):
    """
    Request model for appending a history entry directly.

    For assignment and category changes ``new_status`` is the ticket's
    current status and the changed values travel in their own fields.
    """
    ticket_id: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    changed_by: Optional[str] = None
    is_assignment_change: bool = False
    previous_assignee: Optional[str] = None
    new_assignee: Optional[str] = None
    is_category_change: bool = False
    previous_category_id: Optional[int] = None
    new_category_id: Optional[int] = None
    previous_subcategory_id: Optional[int] = None
    new_subcategory_id: Optional[int] = None
    previous_group_id: Optional[int] = None
    new_group_id: Optional[int] = None


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Response model (and audit snapshot) of a ticket."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    status: TicketStatusStr
    priority: PriorityStr
    assigned_to: Optional[str] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    group_id: Optional[int] = None
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: Optional[str] = None
    due_date: Optional[datetime] = None
    sla_breach: bool = False
    resolution_time: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_deleted: bool = False

    @classmethod
    def from_ticket(cls, ticket: Any, sla_breach: Optional[bool] = None) -> "TicketResponse":
        response = cls.model_validate(ticket)
        if sla_breach is not None:
            response = response.model_copy(update={"sla_breach": sla_breach})
        return response


class StatusHistoryEntryResponse(BaseModel):
    """Response model for a history entry."""
    id: Optional[int] = None
    ticket_id: str
    kind: ChangeKindStr
    previous_status: Optional[TicketStatusStr] = None
    new_status: TicketStatusStr
    is_assignment_change: bool
    change: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific details")
    changed_by: str
    changed_by_name: Optional[str] = None
    changed_at: datetime
    time_in_status: Optional[float] = Field(None, description="Seconds spent in the previous status")

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> "StatusHistoryEntryResponse":
        change = entry.change
        if isinstance(change, AssignmentChange):
            details = {
                "previous_assignee": change.from_assignee,
                "new_assignee": change.to_assignee,
            }
        elif isinstance(change, CategoryChange):
            details = {
                "previous_category_id": change.previous_category_id,
                "new_category_id": change.new_category_id,
                "previous_subcategory_id": change.previous_subcategory_id,
                "new_subcategory_id": change.new_subcategory_id,
                "previous_group_id": change.previous_group_id,
                "new_group_id": change.new_group_id,
            }
        else:
            details = {}

        previous = entry.previous_status
        return cls(
            id=entry.id,
            ticket_id=str(entry.ticket_id),
            kind=entry.kind.value,
            previous_status=previous.value if previous else None,
            new_status=entry.new_status.value,
            is_assignment_change=entry.is_assignment_change,
            change=details,
            changed_by=entry.changed_by,
            changed_by_name=entry.changed_by_name,
            changed_at=entry.changed_at,
            time_in_status=entry.time_in_status
        )


class TransitionResponse(BaseModel):
    """Ticket after a transition with the entry it produced."""
    ticket: TicketResponse
    history_entry: StatusHistoryEntryResponse


class GroupChangeResponse(BaseModel):
    """Ticket after a category/group change; no entry when nothing changed."""
    ticket: TicketResponse
    changed: bool
    history_entry: Optional[StatusHistoryEntryResponse] = None


class ResolutionAnalysisItem(BaseModel):
    """Resolution time of one resolved ticket."""
    ticket_id: UUID
    title: str
    status: TicketStatusStr
    priority: PriorityStr
    group_id: Optional[int] = None
    created_at: datetime
    resolution_time: datetime
    resolution_minutes: float
    due_date: Optional[datetime] = None
    sla_breach: bool


class ResolutionAnalysisResponse(BaseModel):
    """Resolved tickets in a date range with their resolution times."""
    start: datetime
    end: datetime
    count: int
    breached_count: int
    average_resolution_minutes: Optional[float] = None
    tickets: List[ResolutionAnalysisItem] = Field(default_factory=list)
