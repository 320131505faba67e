"""
Lifecycle Domain Entities
=========================

Recorded changes of a ticket.

A change is one of three tagged variants instead of free-form status
strings, so consumers dispatch on the type of change.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional, Union

from src.config import ChangeKind, TicketStatus


@dataclass(frozen=True)
class StatusChange:
    """The ticket moved from one status to another."""
    kind: ClassVar[ChangeKind] = ChangeKind.STATUS_CHANGE

    from_status: Optional[TicketStatus]
    to_status: TicketStatus

    @property
    def previous_status(self) -> Optional[TicketStatus]:
        return self.from_status

    @property
    def new_status(self) -> TicketStatus:
        return self.to_status

    def describe(self) -> str:
        source = self.from_status.value if self.from_status else "-"
        return f"{source} -> {self.to_status.value}"


@dataclass(frozen=True)
class AssignmentChange:
    """
    The assignee changed; the status did not.

    ``status`` is the ticket status at the time of the change.
    """
    kind: ClassVar[ChangeKind] = ChangeKind.ASSIGNMENT_CHANGE

    from_assignee: Optional[str]
    to_assignee: Optional[str]
    status: TicketStatus

    @property
    def previous_status(self) -> Optional[TicketStatus]:
        return self.status

    @property
    def new_status(self) -> TicketStatus:
        return self.status

    def describe(self) -> str:
        return f"assignee {self.from_assignee or 'unassigned'} -> {self.to_assignee or 'unassigned'}"


@dataclass(frozen=True)
class CategoryChange:
    """The ticket's category, subcategory or group changed."""
    kind: ClassVar[ChangeKind] = ChangeKind.CATEGORY_CHANGE

    status: TicketStatus
    previous_category_id: Optional[int] = None
    new_category_id: Optional[int] = None
    previous_subcategory_id: Optional[int] = None
    new_subcategory_id: Optional[int] = None
    previous_group_id: Optional[int] = None
    new_group_id: Optional[int] = None

    @property
    def previous_status(self) -> Optional[TicketStatus]:
        return self.status

    @property
    def new_status(self) -> TicketStatus:
        return self.status

    @property
    def group_changed(self) -> bool:
        return self.previous_group_id != self.new_group_id

    def describe(self) -> str:
        return (
            f"category {self.previous_category_id}/{self.previous_subcategory_id} -> "
            f"{self.new_category_id}/{self.new_subcategory_id}, "
            f"group {self.previous_group_id} -> {self.new_group_id}"
        )


TransitionKind = Union[StatusChange, AssignmentChange, CategoryChange]


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    Immutable record of one ticket change.

    ``time_in_status`` is the number of seconds the ticket spent in the
    previous status; it is only known for status changes.
    """

    ticket_id: Any
    change: TransitionKind
    changed_by: str
    changed_at: datetime
    time_in_status: Optional[float] = None
    id: Optional[int] = None
    changed_by_name: Optional[str] = None

    @property
    def kind(self) -> ChangeKind:
        return self.change.kind

    @property
    def previous_status(self) -> Optional[TicketStatus]:
        return self.change.previous_status

    @property
    def new_status(self) -> TicketStatus:
        return self.change.new_status

    @property
    def is_assignment_change(self) -> bool:
        return isinstance(self.change, AssignmentChange)
