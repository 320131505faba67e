"""
Lifecycle Controllers (API Routes)
==================================

FastAPI routes for tickets and their status history.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import AuditLogger
from src.audit.domain import RequestMeta
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.core import Clock
from src.lifecycle.application import (
    AssignmentRequest,
    GroupChangeRequest,
    GroupChangeResponse,
    ResolutionAnalysisResponse,
    ResolveRequest,
    StatusHistoryCreateRequest,
    StatusHistoryEntryResponse,
    StatusHistoryRecorder,
    TicketCreateRequest,
    TicketLifecycleService,
    TicketResponse,
    TransitionRequest,
    TransitionResponse,
)
from src.lifecycle.infrastructure import (
    SQLAlchemyStatusHistoryRepository,
    SQLAlchemyTicketRepository,
)
from src.infrastructure.database import commit
from src.shared.api.dependencies import get_clock, get_request_meta, get_tenant_session
from src.sla.application import DeadlineService
from src.sla.interfaces.controllers import get_deadline_service

router = APIRouter(prefix="/tickets", tags=["Tickets"])

CATEGORY_FIELDS = {
    "previous_category_id", "new_category_id",
    "previous_subcategory_id", "new_subcategory_id",
    "previous_group_id", "new_group_id",
}


# ========== Example payloads for Swagger ==========

TICKET_EXAMPLE = {
    "id": "5b0c3d4e-8f61-4a7b-9d2e-1f3a5c7e9b01",
    "title": "VPN drops every 10 minutes",
    "description": "Since the client update the tunnel resets.",
    "status": "in_progress",
    "priority": "high",
    "assigned_to": "agent-7",
    "category_id": 2,
    "subcategory_id": 11,
    "group_id": 3,
    "created_at": "2024-03-20T09:00:00Z",
    "created_by": "user-42",
    "updated_at": "2024-03-20T09:30:00Z",
    "updated_by": "agent-7",
    "due_date": "2024-03-20T17:00:00Z",
    "sla_breach": False,
    "resolution_time": None,
    "resolution_notes": None,
    "resolved_by": None,
    "tags": ["vpn"],
    "is_deleted": False
}

HISTORY_ENTRY_EXAMPLE = {
    "id": 18,
    "ticket_id": "5b0c3d4e-8f61-4a7b-9d2e-1f3a5c7e9b01",
    "kind": "status_change",
    "previous_status": "open",
    "new_status": "in_progress",
    "is_assignment_change": False,
    "change": {},
    "changed_by": "agent-7",
    "changed_by_name": "Ada Agent",
    "changed_at": "2024-03-20T09:30:00Z",
    "time_in_status": 1800.0
}


# ========== Dependencies ==========

async def get_lifecycle_service(
    session: AsyncSession = Depends(get_tenant_session),
    deadline_service: DeadlineService = Depends(get_deadline_service),
    clock: Clock = Depends(get_clock)
) -> TicketLifecycleService:
    """Get lifecycle service instance bound to the request's unit of work."""
    recorder = StatusHistoryRecorder(SQLAlchemyStatusHistoryRepository(session), clock)
    audit_logger = AuditLogger(SQLAlchemyAuditLogRepository(session), clock)
    return TicketLifecycleService(
        SQLAlchemyTicketRepository(session),
        recorder,
        audit_logger,
        deadline_service,
        clock
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Create an `open` ticket.

    When `group_id` is given the due date is computed from the group's SLA
    configuration and the business calendar. The creation is recorded as
    the first status history entry.
    """,
    responses={
        201: {
            "description": "Ticket created",
            "content": {"application/json": {"example": TICKET_EXAMPLE}}
        },
        400: {"description": "Missing creator or invalid payload"},
        404: {"description": "Group not found"}
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    ticket, _ = await service.create_ticket(request, request_meta)
    await commit(session)
    return TicketResponse.from_ticket(ticket)


@router.get(
    "/resolution-analysis",
    response_model=ResolutionAnalysisResponse,
    summary="Resolution times in a date range",
    description="""
    Resolved and closed tickets whose resolution time falls in
    `[start, end)`, with the minutes each took and its breach flag.
    """
)
async def resolution_analysis(
    start: datetime = Query(..., description="Inclusive lower bound of resolution time"),
    end: datetime = Query(..., description="Exclusive upper bound of resolution time"),
    group_id: Optional[int] = Query(None, description="Restrict to one group"),
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    return await service.resolution_analysis(start, end, group_id)


@router.post(
    "/status-history",
    response_model=StatusHistoryEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a status history entry",
    description="""
    Record a history entry for an existing ticket without changing the
    ticket itself.

    `ticket_id`, `new_status` and `changed_by` are required. For an
    assignment change set `is_assignment_change` and pass the assignees;
    for a category change set `is_category_change` and pass the previous
    and new category, subcategory and group ids. `new_status` is then the
    ticket's current status.
    """,
    responses={
        201: {
            "description": "Entry recorded",
            "content": {"application/json": {"example": HISTORY_ENTRY_EXAMPLE}}
        },
        400: {"description": "Missing field or unknown status"},
        404: {"description": "Ticket not found"}
    }
)
async def create_status_history(
    request: StatusHistoryCreateRequest,
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    entry = await service.record_history(
        request.ticket_id,
        request.previous_status,
        request.new_status,
        request.changed_by,
        is_assignment_change=request.is_assignment_change,
        previous_assignee=request.previous_assignee,
        new_assignee=request.new_assignee,
        is_category_change=request.is_category_change,
        category_ids=request.model_dump(include=CATEGORY_FIELDS)
    )
    await commit(session)
    return StatusHistoryEntryResponse.from_domain(entry)


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    description="""
    Get a ticket. The breach flag is evaluated against
    the current time; resolved and closed tickets report the flag frozen
    at their resolution time.
    """,
    responses={
        200: {
            "description": "Ticket",
            "content": {"application/json": {"example": TICKET_EXAMPLE}}
        },
        404: {"description": "Ticket not found or deleted"}
    }
)
async def get_ticket(
    ticket_id: str,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    ticket = await service.get_ticket(ticket_id)
    return TicketResponse.from_ticket(ticket, service.current_breach(ticket))


@router.post(
    "/{ticket_id}/transitions",
    response_model=TransitionResponse,
    summary="Change the status of a ticket",
    description="""
    Move a ticket to `new_status`.

    **Allowed transitions**:
    - `open` → `in_progress`, `cancelled`
    - `in_progress` → `waiting`, `pending`, `resolved`, `cancelled`
    - `waiting` / `pending` → `in_progress`, `cancelled`
    - `resolved` → `closed`, `reopened`, `cancelled`
    - `reopened` → `in_progress`, `cancelled`
    - `closed`, `cancelled`: none
    """,
    responses={
        200: {"description": "Ticket transitioned"},
        400: {"description": "Missing actor or unknown status"},
        404: {"description": "Ticket not found"},
        409: {"description": "Transition not permitted"}
    }
)
async def transition_ticket(
    ticket_id: str,
    request: TransitionRequest,
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    ticket, entry = await service.transition(
        ticket_id, request.new_status, request.changed_by, request_meta
    )
    await commit(session)
    return TransitionResponse(
        ticket=TicketResponse.from_ticket(ticket),
        history_entry=StatusHistoryEntryResponse.from_domain(entry)
    )


@router.post(
    "/{ticket_id}/resolve",
    response_model=TicketResponse,
    summary="Resolve a ticket",
    description="""
    Resolve a ticket with mandatory `resolution_notes`.

    Stamps the resolution time and freezes the breach flag. `tags`, when
    given, replace the ticket's tags.
    """,
    responses={
        200: {"description": "Ticket resolved"},
        400: {"description": "Missing notes or resolver"},
        404: {"description": "Ticket not found"},
        409: {"description": "Ticket cannot be resolved from its status"}
    }
)
async def resolve_ticket(
    ticket_id: str,
    request: ResolveRequest,
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    ticket = await service.resolve(
        ticket_id,
        request.resolution_notes,
        request.resolved_by,
        tags=request.tags,
        request_meta=request_meta
    )
    await commit(session)
    return TicketResponse.from_ticket(ticket)


@router.post(
    "/{ticket_id}/assignment",
    response_model=StatusHistoryEntryResponse,
    summary="Reassign a ticket",
    description="Change the assignee of a ticket; `null` unassigns it. The status is unchanged.",
    responses={
        200: {"description": "Assignment change recorded"},
        400: {"description": "Missing actor or assignee unchanged"},
        404: {"description": "Ticket not found"},
        409: {"description": "Ticket is closed or cancelled"}
    }
)
async def reassign_ticket(
    ticket_id: str,
    request: AssignmentRequest,
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    entry = await service.reassign(ticket_id, request.assigned_to, request.changed_by, request_meta)
    await commit(session)
    return StatusHistoryEntryResponse.from_domain(entry)


@router.post(
    "/{ticket_id}/group",
    response_model=GroupChangeResponse,
    summary="Move a ticket to another category or group",
    description="""
    Replace the category, subcategory and group of a ticket.

    A group change recomputes the due date from the ticket's creation
    time under the new group's SLA configuration.
    """,
    responses={
        200: {"description": "Ticket updated, or unchanged"},
        400: {"description": "Missing actor"},
        404: {"description": "Ticket or group not found"},
        409: {"description": "Ticket is closed or cancelled"}
    }
)
async def change_ticket_group(
    ticket_id: str,
    request: GroupChangeRequest,
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    ticket, entry = await service.change_group(
        ticket_id,
        request.group_id,
        request.category_id,
        request.subcategory_id,
        request.changed_by,
        request_meta
    )
    await commit(session)
    return GroupChangeResponse(
        ticket=TicketResponse.from_ticket(ticket),
        changed=entry is not None,
        history_entry=StatusHistoryEntryResponse.from_domain(entry) if entry else None
    )


@router.delete(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Delete a ticket",
    description="Soft delete: the ticket is flagged and behaves as absent afterwards.",
    responses={
        200: {"description": "Ticket deleted"},
        400: {"description": "Missing deleted_by"},
        404: {"description": "Ticket not found"}
    }
)
async def delete_ticket(
    ticket_id: str,
    deleted_by: Optional[str] = Query(None, description="Deleting user id"),
    request_meta: RequestMeta = Depends(get_request_meta),
    service: TicketLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_tenant_session)
):
    ticket = await service.soft_delete(ticket_id, deleted_by, request_meta)
    await commit(session)
    return TicketResponse.from_ticket(ticket)


@router.get(
    "/{ticket_id}/status-history",
    response_model=List[StatusHistoryEntryResponse],
    summary="Get the status history of a ticket",
    description="""
    All history entries of a ticket, most recent first, with the display
    name of the acting user. Empty when the ticket has none.
    """,
    responses={
        200: {
            "description": "History entries",
            "content": {"application/json": {"example": [HISTORY_ENTRY_EXAMPLE]}}
        }
    }
)
async def get_status_history(
    ticket_id: str,
    service: TicketLifecycleService = Depends(get_lifecycle_service)
):
    entries = await service.history(ticket_id)
    return [StatusHistoryEntryResponse.from_domain(entry) for entry in entries]


# Export router for inclusion in main app
lifecycle_router = router
