"""
Lifecycle Application Services
==============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Every mutating operation of TicketLifecycleService runs inside the
caller's unit of work: the ticket update, its history entry and its
audit entry are committed together or not at all.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from src.audit.application import AuditLogger
from src.audit.domain import RequestMeta
from src.config import AuditAction, TicketStatus, RESOLVED_STATUSES
from src.core import (
    Clock,
    DurationComputationException,
    InvalidTransitionException,
    ResourceNotFoundException,
    ValidationException,
    ensure_utc,
    utc_now,
)
from src.lifecycle.application.dto import (
    ResolutionAnalysisItem,
    ResolutionAnalysisResponse,
    TicketCreateRequest,
    TicketResponse,
)
from src.lifecycle.domain import (
    AssignmentChange,
    CategoryChange,
    StatusChange,
    StatusHistoryEntry,
    TicketStateMachine,
    TransitionKind,
    parse_status,
)
from src.shared.infrastructure.logging import get_logger
from src.sla.application import DeadlineService
from src.sla.domain import BreachDetector

logger = get_logger(__name__)

TICKET_ENTITY = "ticket"


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, values: dict) -> Any:
        """Insert a new ticket."""

    @abstractmethod
    async def get(self, ticket_id: Any, include_deleted: bool = False) -> Optional[Any]:
        """Get ticket by id."""

    @abstractmethod
    async def get_for_update(self, ticket_id: Any) -> Optional[Any]:
        """Get ticket by id, locking its row until the transaction ends."""

    @abstractmethod
    async def save(self, ticket: Any) -> Any:
        """Flush changes made to a loaded ticket."""

    @abstractmethod
    async def list_resolved_between(
        self,
        start: datetime,
        end: datetime,
        group_id: Optional[int] = None
    ) -> List[Any]:
        """Non-deleted resolved/closed tickets with resolution_time in [start, end)."""


class IStatusHistoryRepository(ABC):
    """Append-only history storage: no update or delete exists."""

    @abstractmethod
    async def add(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """Persist a new entry and return it with its id."""

    @abstractmethod
    async def last_entered_at(self, ticket_id: Any, status: TicketStatus) -> Optional[datetime]:
        """
        When the ticket entered ``status`` through a status change, or
        None when a later status change has already left it.

        Raises:
            DurationComputationException: If the lookup failed
        """

    @abstractmethod
    async def list_for_ticket(self, ticket_id: Any) -> List[StatusHistoryEntry]:
        """Entries most recent first, ties in reverse insertion order."""


# ========== Application Services ==========

def require_actor(actor: Optional[str], field: str = "changed_by") -> str:
    if actor is None or not str(actor).strip():
        raise ValidationException(f"{field} is required", field=field)
    return str(actor).strip()


class StatusHistoryRecorder:
    """
    Appends immutable history entries and derives the time spent in the
    previous status.

    The duration is the only part of an entry allowed to degrade: when it
    cannot be computed the entry is still written without it.
    """

    def __init__(self, repository: IStatusHistoryRepository, clock: Clock = utc_now):
        self._repo = repository
        self._clock = clock

    async def record(self, ticket_id: Any, change: TransitionKind, actor: str) -> StatusHistoryEntry:
        """
        Append one history entry.

        Args:
            ticket_id: Ticket the change belongs to
            change: What changed
            actor: Acting user id

        Raises:
            ValidationException: If the actor is missing
        """
        actor = require_actor(actor)
        now = self._clock()

        time_in_status = None
        if isinstance(change, StatusChange) and change.from_status is not None:
            time_in_status = await self._time_in_previous_status(ticket_id, change.from_status, now)

        entry = StatusHistoryEntry(
            ticket_id=ticket_id,
            change=change,
            changed_by=actor,
            changed_at=now,
            time_in_status=time_in_status
        )
        return await self._repo.add(entry)

    async def _time_in_previous_status(
        self,
        ticket_id: Any,
        previous_status: TicketStatus,
        now: datetime
    ) -> Optional[float]:
        try:
            entered_at = await self._repo.last_entered_at(ticket_id, previous_status)
            if entered_at is None:
                return None

            seconds = (ensure_utc(now) - ensure_utc(entered_at)).total_seconds()
            if seconds < 0:
                raise DurationComputationException(
                    "Previous status entered after the current change",
                    {"entered_at": entered_at.isoformat(), "changed_at": now.isoformat()}
                )
            return seconds
        except DurationComputationException as e:
            logger.warning(
                "Time in status not computed",
                extra={
                    "ticket_id": str(ticket_id),
                    "previous_status": previous_status.value,
                    "error": e.message,
                    "details": e.details
                }
            )
            return None

    async def history(self, ticket_id: Any) -> List[StatusHistoryEntry]:
        """Entries of a ticket, most recent first; empty when there are none."""
        return await self._repo.list_for_ticket(ticket_id)


class TicketLifecycleService:
    """
    Ticket mutations driven by the state machine.

    Each operation loads the ticket with a row lock, validates, applies
    the change and writes one history entry and one audit entry.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        recorder: StatusHistoryRecorder,
        audit_logger: AuditLogger,
        deadline_service: DeadlineService,
        clock: Clock = utc_now
    ):
        self._tickets = ticket_repository
        self._recorder = recorder
        self._audit = audit_logger
        self._deadlines = deadline_service
        self._clock = clock

    # ---------- reads ----------

    async def get_ticket(self, ticket_id: Any) -> Any:
        """
        Raises:
            ResourceNotFoundException: If the ticket is absent or deleted
        """
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        return ticket

    def current_breach(self, ticket: Any, now: Optional[datetime] = None) -> bool:
        """
        Breach flag as of now, evaluated lazily on read.

        Resolved and closed tickets keep their stored flag.
        """
        if BreachDetector.is_frozen(ticket):
            return bool(ticket.sla_breach)
        return BreachDetector.is_breached(ticket, now or self._clock())

    async def history(self, ticket_id: Any) -> List[StatusHistoryEntry]:
        return await self._recorder.history(ticket_id)

    async def resolution_analysis(
        self,
        start: datetime,
        end: datetime,
        group_id: Optional[int] = None
    ) -> ResolutionAnalysisResponse:
        """Resolved tickets with resolution_time in [start, end) and their resolution times."""
        start, end = ensure_utc(start), ensure_utc(end)
        if start >= end:
            raise ValidationException("start must be before end", field="start")

        tickets = await self._tickets.list_resolved_between(start, end, group_id)
        items = [
            ResolutionAnalysisItem(
                ticket_id=ticket.id,
                title=ticket.title,
                status=ticket.status,
                priority=ticket.priority,
                group_id=ticket.group_id,
                created_at=ticket.created_at,
                resolution_time=ticket.resolution_time,
                resolution_minutes=round(
                    (ticket.resolution_time - ticket.created_at).total_seconds() / 60, 2
                ),
                due_date=ticket.due_date,
                sla_breach=bool(ticket.sla_breach)
            )
            for ticket in tickets
        ]

        average = None
        if items:
            average = round(sum(item.resolution_minutes for item in items) / len(items), 2)

        return ResolutionAnalysisResponse(
            start=start,
            end=end,
            count=len(items),
            breached_count=sum(1 for item in items if item.sla_breach),
            average_resolution_minutes=average,
            tickets=items
        )

    # ---------- mutations ----------

    async def create_ticket(
        self,
        request: TicketCreateRequest,
        request_meta: Optional[RequestMeta] = None
    ) -> Tuple[Any, StatusHistoryEntry]:
        """
        Create an open ticket, computing its deadline when a group is given.

        Raises:
            ValidationException: If the creator is missing
            ResourceNotFoundException: If the group does not exist
        """
        actor = require_actor(request.created_by, "created_by")
        now = self._clock()
        due_date = await self._deadlines.deadline_for_group(request.group_id, now)

        ticket = await self._tickets.create({
            "title": request.title,
            "description": request.description,
            "status": TicketStatus.OPEN.value,
            "priority": request.priority,
            "assigned_to": request.assigned_to,
            "category_id": request.category_id,
            "subcategory_id": request.subcategory_id,
            "group_id": request.group_id,
            "tags": list(request.tags),
            "created_at": now,
            "created_by": actor,
            "updated_at": now,
            "updated_by": actor,
            "due_date": due_date,
            "sla_breach": False,
            "is_deleted": False,
        })

        entry = await self._recorder.record(ticket.id, StatusChange(None, TicketStatus.OPEN), actor)
        await self._audit.log(
            TICKET_ENTITY, ticket.id, AuditAction.CREATE,
            None, TicketResponse.from_ticket(ticket), actor, request_meta
        )

        logger.info(
            "Ticket created",
            extra={"ticket_id": str(ticket.id), "group_id": ticket.group_id, "due_date": str(due_date)}
        )
        return ticket, entry

    async def transition(
        self,
        ticket_id: Any,
        new_status: Any,
        actor: Optional[str],
        request_meta: Optional[RequestMeta] = None
    ) -> Tuple[Any, StatusHistoryEntry]:
        """
        Move a ticket to ``new_status``.

        Raises:
            ValidationException: If the actor or status is missing or unknown
            ResourceNotFoundException: If the ticket is absent or deleted
            InvalidTransitionException: If the transition is not permitted
        """
        actor = require_actor(actor)
        ticket = await self._load_for_update(ticket_id)
        target = self._validate(ticket, new_status)
        return await self._apply_transition(ticket, target, actor, request_meta)

    async def resolve(
        self,
        ticket_id: Any,
        resolution_notes: Optional[str],
        resolved_by: Optional[str],
        tags: Optional[List[str]] = None,
        request_meta: Optional[RequestMeta] = None
    ) -> Any:
        """
        Resolve a ticket, freezing its resolution time and breach flag.

        Raises:
            ValidationException: If the notes or the resolver are missing
            ResourceNotFoundException: If the ticket is absent or deleted
            InvalidTransitionException: If the ticket cannot be resolved
        """
        if resolution_notes is None or not resolution_notes.strip():
            raise ValidationException("resolution_notes is required", field="resolution_notes")
        actor = require_actor(resolved_by, "resolved_by")

        ticket = await self._load_for_update(ticket_id)
        target = self._validate(ticket, TicketStatus.RESOLVED)

        def apply_resolution(t: Any) -> None:
            t.resolution_notes = resolution_notes.strip()
            t.resolved_by = actor
            if tags is not None:
                t.tags = list(tags)

        ticket, _ = await self._apply_transition(
            ticket, target, actor, request_meta, extra=apply_resolution
        )
        return ticket

    async def reassign(
        self,
        ticket_id: Any,
        new_assignee: Optional[str],
        actor: Optional[str],
        request_meta: Optional[RequestMeta] = None
    ) -> StatusHistoryEntry:
        """
        Change the assignee without touching the status.

        Raises:
            ValidationException: If the actor is missing or the assignee is unchanged
            ResourceNotFoundException: If the ticket is absent or deleted
            InvalidTransitionException: If the ticket is closed or cancelled
        """
        actor = require_actor(actor)
        ticket = await self._load_for_update(ticket_id)
        status = TicketStatus(ticket.status)
        self._reject_terminal(ticket, "reassign")

        new_assignee = new_assignee or None
        if new_assignee == ticket.assigned_to:
            raise ValidationException(
                f"Ticket is already assigned to {new_assignee or 'nobody'}",
                field="assigned_to"
            )

        before = TicketResponse.from_ticket(ticket)
        previous_assignee = ticket.assigned_to
        now = self._clock()

        ticket.assigned_to = new_assignee
        ticket.updated_at = now
        ticket.updated_by = actor
        await self._tickets.save(ticket)

        entry = await self._recorder.record(
            ticket.id, AssignmentChange(previous_assignee, new_assignee, status), actor
        )
        await self._audit.log(
            TICKET_ENTITY, ticket.id, AuditAction.ASSIGNMENT_CHANGE,
            before, TicketResponse.from_ticket(ticket), actor, request_meta
        )

        logger.info(
            "Ticket reassigned",
            extra={"ticket_id": str(ticket.id), "from": previous_assignee, "to": new_assignee}
        )
        return entry

    async def change_group(
        self,
        ticket_id: Any,
        group_id: Optional[int],
        category_id: Optional[int],
        subcategory_id: Optional[int],
        actor: Optional[str],
        request_meta: Optional[RequestMeta] = None
    ) -> Tuple[Any, Optional[StatusHistoryEntry]]:
        """
        Move a ticket to another category, subcategory or group.

        The deadline is recomputed from the ticket's creation instant.
        Unchanged values are a no-op and produce no entry.

        Raises:
            ValidationException: If the actor is missing
            ResourceNotFoundException: If the ticket or the group is absent
            InvalidTransitionException: If the ticket is closed or cancelled
        """
        actor = require_actor(actor)
        ticket = await self._load_for_update(ticket_id)
        self._reject_terminal(ticket, "change the group of")

        unchanged = (
            ticket.group_id == group_id
            and ticket.category_id == category_id
            and ticket.subcategory_id == subcategory_id
        )
        if unchanged:
            return ticket, None

        before = TicketResponse.from_ticket(ticket)
        change = CategoryChange(
            status=TicketStatus(ticket.status),
            previous_category_id=ticket.category_id,
            new_category_id=category_id,
            previous_subcategory_id=ticket.subcategory_id,
            new_subcategory_id=subcategory_id,
            previous_group_id=ticket.group_id,
            new_group_id=group_id
        )
        now = self._clock()

        if change.group_changed:
            ticket.due_date = await self._deadlines.deadline_for_group(group_id, ticket.created_at)
        ticket.group_id = group_id
        ticket.category_id = category_id
        ticket.subcategory_id = subcategory_id
        ticket.sla_breach = BreachDetector.is_breached(ticket, now)
        ticket.updated_at = now
        ticket.updated_by = actor
        await self._tickets.save(ticket)

        entry = await self._recorder.record(ticket.id, change, actor)
        await self._audit.log(
            TICKET_ENTITY, ticket.id, AuditAction.CATEGORY_CHANGE,
            before, TicketResponse.from_ticket(ticket), actor, request_meta
        )

        logger.info(
            "Ticket group changed",
            extra={"ticket_id": str(ticket.id), "group_id": group_id, "due_date": str(ticket.due_date)}
        )
        return ticket, entry

    async def soft_delete(
        self,
        ticket_id: Any,
        actor: Optional[str],
        request_meta: Optional[RequestMeta] = None
    ) -> Any:
        """
        Flag a ticket as deleted; it behaves as absent afterwards.

        Raises:
            ValidationException: If the actor is missing
            ResourceNotFoundException: If the ticket is absent or already deleted
        """
        actor = require_actor(actor, "deleted_by")
        ticket = await self._load_for_update(ticket_id)

        before = TicketResponse.from_ticket(ticket)
        ticket.is_deleted = True
        ticket.updated_at = self._clock()
        ticket.updated_by = actor
        await self._tickets.save(ticket)

        await self._audit.log(
            TICKET_ENTITY, ticket.id, AuditAction.DELETE,
            before, TicketResponse.from_ticket(ticket), actor, request_meta
        )
        logger.info("Ticket deleted", extra={"ticket_id": str(ticket.id)})
        return ticket

    async def record_history(
        self,
        ticket_id: Optional[Any],
        previous_status: Optional[str],
        new_status: Optional[str],
        actor: Optional[str],
        is_assignment_change: bool = False,
        previous_assignee: Optional[str] = None,
        new_assignee: Optional[str] = None,
        is_category_change: bool = False,
        category_ids: Optional[Dict[str, Optional[int]]] = None
    ) -> StatusHistoryEntry:
        """
        Append a history entry for an existing ticket without changing it.

        ``category_ids`` holds the previous/new category, subcategory and
        group ids of a category change, keyed like ``CategoryChange`` fields.

        Raises:
            ValidationException: If ticket_id, new_status or the actor is missing,
                a status is unknown, or both change flags are set; nothing is
                written
            ResourceNotFoundException: If the ticket is absent or deleted
        """
        if ticket_id is None or not str(ticket_id).strip():
            raise ValidationException("ticket_id is required", field="ticket_id")
        target = parse_status(new_status, "new_status")
        actor = require_actor(actor)
        source = parse_status(previous_status, "previous_status") if previous_status else None

        if is_assignment_change and is_category_change:
            raise ValidationException(
                "An entry is either an assignment or a category change",
                field="is_category_change"
            )

        ticket = await self.get_ticket(ticket_id)

        if is_assignment_change:
            change = AssignmentChange(previous_assignee or None, new_assignee or None, target)
        elif is_category_change:
            change = CategoryChange(status=target, **(category_ids or {}))
        else:
            change = StatusChange(source, target)
        return await self._recorder.record(ticket.id, change, actor)

    # ---------- helpers ----------

    async def _load_for_update(self, ticket_id: Any) -> Any:
        ticket = await self._tickets.get_for_update(ticket_id)
        if ticket is None or ticket.is_deleted:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        return ticket

    def _validate(self, ticket: Any, new_status: Any) -> TicketStatus:
        try:
            return TicketStateMachine.validate_transition(ticket.status, new_status)
        except InvalidTransitionException as e:
            logger.warning(
                "Invalid ticket transition",
                extra={
                    "ticket_id": str(ticket.id),
                    "current_status": e.current_status,
                    "attempted_status": e.attempted_status,
                    "reason": e.reason
                }
            )
            raise

    def _reject_terminal(self, ticket: Any, operation: str) -> None:
        if TicketStateMachine.is_terminal(ticket.status):
            raise InvalidTransitionException(
                ticket.status,
                ticket.status,
                reason=f"Cannot {operation} a {ticket.status} ticket"
            )

    async def _apply_transition(
        self,
        ticket: Any,
        target: TicketStatus,
        actor: str,
        request_meta: Optional[RequestMeta],
        extra=None
    ) -> Tuple[Any, StatusHistoryEntry]:
        before = TicketResponse.from_ticket(ticket)
        previous = TicketStatus(ticket.status)
        now = self._clock()

        ticket.status = target.value
        ticket.updated_at = now
        ticket.updated_by = actor

        if target == TicketStatus.RESOLVED:
            ticket.resolution_time = now
        elif target == TicketStatus.REOPENED:
            ticket.resolution_time = None
            ticket.resolved_by = None

        if extra is not None:
            extra(ticket)

        ticket.sla_breach = BreachDetector.is_breached(ticket, now)

        await self._tickets.save(ticket)

        entry = await self._recorder.record(ticket.id, StatusChange(previous, target), actor)
        await self._audit.log(
            TICKET_ENTITY, ticket.id, AuditAction.STATUS_CHANGE,
            before, TicketResponse.from_ticket(ticket), actor, request_meta
        )

        logger.info(
            "Ticket transitioned",
            extra={
                "ticket_id": str(ticket.id),
                "previous_status": previous.value,
                "new_status": target.value,
                "sla_breach": ticket.sla_breach,
                "resolved": target in RESOLVED_STATUSES
            }
        )
        return ticket, entry
