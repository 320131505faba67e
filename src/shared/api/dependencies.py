"""
Shared API Dependencies
=======================

Request-scoped dependencies shared by all module routers.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.audit.domain import RequestMeta
from src.config import settings
from src.core import Clock, utc_now
from src.infrastructure.database import (
    get_session_maker,
    open_tenant_session,
    tenant_schema,
    tenant_scope,
    unit_of_work,
)
from src.sla.application import SessionScope


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")
) -> str:
    """
    Tenant of the request, from the X-Tenant-ID header.

    Raises:
        ValidationException: If the tenant id is not a safe identifier
    """
    tenant_id = (x_tenant_id or settings.default_tenant).strip()
    tenant_schema(tenant_id)
    return tenant_id


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session maker of the application engine."""
    return get_session_maker()


async def get_tenant_session(
    tenant_id: str = Depends(get_tenant_id),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
) -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work per request, bound to the tenant schema.

    Commits when the endpoint returns, rolls back when it raises.
    """
    session = open_tenant_session(session_maker, tenant_id)
    async with unit_of_work(session) as active:
        yield active


def get_session_scope(
    tenant_id: str = Depends(get_tenant_id),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
) -> SessionScope:
    """Factory of independent tenant transactions for batch work."""
    return tenant_scope(session_maker, tenant_id)


def get_clock() -> Clock:
    return utc_now


def get_request_meta(request: Request) -> RequestMeta:
    """Origin of the request for the audit trail."""
    return RequestMeta.from_headers(request.headers)
