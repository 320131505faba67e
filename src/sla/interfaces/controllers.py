"""
SLA Controllers (API Routes)
=============================

FastAPI routes for deadline previews and the breach sweep.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import Clock
from src.lifecycle.infrastructure import SQLAlchemyTicketRepository
from src.shared.api.dependencies import (
    get_clock,
    get_session_scope,
    get_tenant_id,
    get_tenant_session,
)
from src.shared.infrastructure.logging import get_logger
from src.sla.application import (
    BreachSweepService,
    DeadlinePreviewRequest,
    DeadlinePreviewResponse,
    DeadlineService,
    IBreachNotifier,
    ICalendarProvider,
    SessionScope,
    SweepResultResponse,
)
from src.sla.infrastructure import CalendarConfigManager, SQLAlchemyGroupSLARepository

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

DEADLINE_PREVIEW_EXAMPLE = {
    "group_id": 3,
    "start_instant": "2024-03-20T20:00:00Z",
    "bucket": "weekday_after_hours",
    "clock_started_at": "2024-03-21T09:00:00Z",
    "anchored": True,
    "sla_minutes": 480,
    "deadline": "2024-03-21T17:00:00Z"
}

SWEEP_RESULT_EXAMPLE = {
    "scanned": 120,
    "flagged": 4,
    "cleared": 1,
    "failed": 0,
    "notification_failures": 0,
    "failed_ticket_ids": []
}


# ========== Dependencies ==========

def get_calendar_provider(request: Request) -> ICalendarProvider:
    """Calendar holder created at startup; settings defaults otherwise."""
    provider = getattr(request.app.state, "calendar_provider", None)
    if provider is None:
        provider = CalendarConfigManager()
        request.app.state.calendar_provider = provider
    return provider


def get_breach_notifier(request: Request) -> Optional[IBreachNotifier]:
    return getattr(request.app.state, "breach_notifier", None)


async def get_deadline_service(
    session: AsyncSession = Depends(get_tenant_session),
    calendar_provider: ICalendarProvider = Depends(get_calendar_provider)
) -> DeadlineService:
    """Get deadline service instance."""
    return DeadlineService(SQLAlchemyGroupSLARepository(session), calendar_provider)


# ========== Route Handlers ==========

@router.post(
    "/deadline",
    response_model=DeadlinePreviewResponse,
    summary="Preview an SLA deadline",
    description="""
    Explain the deadline a ticket would get if it started at `start_instant`.

    Pass either a stored `group_id` or an inline `sla_config`.

    **Calendar buckets**: `weekday_business`, `weekday_after_hours`,
    `weekend_business`, `weekend_after_hours`

    With `next_day_start` enabled, a ticket started outside business hours
    starts its clock at the next business opening and gets the
    business-hours SLA.
    """,
    responses={
        200: {
            "description": "Deadline derivation",
            "content": {
                "application/json": {
                    "example": DEADLINE_PREVIEW_EXAMPLE
                }
            }
        },
        400: {"description": "Neither group_id nor sla_config given"},
        404: {"description": "Group not found"}
    }
)
async def preview_deadline(
    request: DeadlinePreviewRequest,
    service: DeadlineService = Depends(get_deadline_service)
):
    if request.sla_config is not None:
        deadline = service.preview(request.start_instant, request.sla_config)
    else:
        deadline = await service.explain_for_group(request.group_id, request.start_instant)

    return DeadlinePreviewResponse.from_domain(deadline, request.group_id)


@router.post(
    "/sweep",
    response_model=SweepResultResponse,
    summary="Run the breach sweep now",
    description="""
    Re-evaluate the breach flag of every active ticket of the tenant.

    Runs the same pass as the scheduled sweep. Tickets that fail are
    reported in `failed_ticket_ids`; the rest of the sweep continues.
    """,
    responses={
        200: {
            "description": "Sweep summary",
            "content": {
                "application/json": {
                    "example": SWEEP_RESULT_EXAMPLE
                }
            }
        }
    }
)
async def run_sweep(
    tenant_id: str = Depends(get_tenant_id),
    session_scope: SessionScope = Depends(get_session_scope),
    notifier: Optional[IBreachNotifier] = Depends(get_breach_notifier),
    clock: Clock = Depends(get_clock)
):
    logger.info("Manual breach sweep requested", extra={"tenant_id": tenant_id})
    service = BreachSweepService(
        session_scope,
        SQLAlchemyTicketRepository,
        notifier=notifier,
        clock=clock,
        tenant_id=tenant_id
    )
    result = await service.sweep()
    return SweepResultResponse.from_domain(result)


# Export router for inclusion in main app
sla_router = router
