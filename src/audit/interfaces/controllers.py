"""
Audit Controllers (API Routes)
==============================

FastAPI routes for the audit trail.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import (
    AuditLogCreateRequest,
    AuditLogger,
    AuditLogResponse,
)
from src.audit.domain import RequestMeta
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.core import Clock
from src.infrastructure.database import commit
from src.shared.api.dependencies import get_clock, get_request_meta, get_tenant_session

router = APIRouter(prefix="/audit", tags=["Audit"])


AUDIT_LOG_EXAMPLE = {
    "id": 41,
    "entity_type": "ticket",
    "entity_id": "5b0c3d4e-8f61-4a7b-9d2e-1f3a5c7e9b01",
    "action": "status_change",
    "previous_state": {"status": "open"},
    "new_state": {"status": "in_progress"},
    "actor_id": "agent-7",
    "occurred_at": "2024-03-20T09:30:00Z",
    "source_ip": "203.0.113.9",
    "user_agent": "Mozilla/5.0"
}


async def get_audit_logger(
    session: AsyncSession = Depends(get_tenant_session),
    clock: Clock = Depends(get_clock)
) -> AuditLogger:
    return AuditLogger(SQLAlchemyAuditLogRepository(session), clock)


@router.post(
    "/logs",
    response_model=AuditLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an audit entry",
    description="""
    Append an entry to the audit trail.

    `entity_type`, `entity_id` and `action` are required. The client
    address and user agent are taken from the request headers unless
    `request_meta` is given; addresses longer than 45 characters keep the
    first entry of a forwarded-for chain.
    """,
    responses={
        201: {
            "description": "Entry recorded",
            "content": {"application/json": {"example": AUDIT_LOG_EXAMPLE}}
        },
        400: {"description": "Missing required field"}
    }
)
async def create_audit_log(
    request: AuditLogCreateRequest,
    header_meta: RequestMeta = Depends(get_request_meta),
    audit_logger: AuditLogger = Depends(get_audit_logger),
    session: AsyncSession = Depends(get_tenant_session)
):
    meta = request.request_meta.to_domain() if request.request_meta else header_meta
    entry = await audit_logger.log(
        request.entity_type,
        request.entity_id,
        request.action,
        request.previous_state,
        request.new_state,
        request.actor_id,
        meta
    )
    await commit(session)
    return AuditLogResponse.from_domain(entry)


@router.get(
    "/logs",
    response_model=List[AuditLogResponse],
    summary="List audit entries of an entity",
    description="Entries of one entity, most recent first."
)
async def list_audit_logs(
    entity_type: str = Query(..., description="Kind of entity, e.g. 'ticket'"),
    entity_id: str = Query(..., description="Identifier of the entity"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum entries returned"),
    audit_logger: AuditLogger = Depends(get_audit_logger)
):
    entries = await audit_logger.list_for_entity(entity_type, entity_id, limit)
    return [AuditLogResponse.from_domain(entry) for entry in entries]


# Export router for inclusion in main app
audit_router = router
