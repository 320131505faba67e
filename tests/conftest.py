from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.audit.application import AuditLogger
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.infrastructure.database import Base, unit_of_work
from src.lifecycle.application import StatusHistoryRecorder, TicketLifecycleService
from src.lifecycle.infrastructure import (
    ActorModel,
    SQLAlchemyStatusHistoryRepository,
    SQLAlchemyTicketRepository,
    TicketModel,
)
from src.main import app
from src.shared.api.dependencies import get_clock, get_session_factory
from src.sla.application import DeadlineService
from src.sla.domain import BusinessCalendar
from src.sla.infrastructure import (
    CalendarConfigManager,
    SLAGroupModel,
    SQLAlchemyGroupSLARepository,
)
from src.sla.interfaces.controllers import get_breach_notifier, get_calendar_provider

# Wednesday, start of business hours
T0 = datetime(2024, 3, 20, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; every call returns the current instant."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calendar_provider():
    return CalendarConfigManager(BusinessCalendar())


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # pysqlite transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def lifecycle(session_maker, clock, calendar_provider):
    """Factory of lifecycle services, each inside its own unit of work."""

    @asynccontextmanager
    async def scope():
        async with unit_of_work(session_maker()) as session:
            deadlines = DeadlineService(SQLAlchemyGroupSLARepository(session), calendar_provider)
            yield TicketLifecycleService(
                SQLAlchemyTicketRepository(session),
                StatusHistoryRecorder(SQLAlchemyStatusHistoryRepository(session), clock),
                AuditLogger(SQLAlchemyAuditLogRepository(session), clock),
                deadlines,
                clock
            )

    return scope


@pytest.fixture
def add_group(session_maker):
    async def add(name="Network", **sla):
        async with unit_of_work(session_maker()) as session:
            group = SLAGroupModel(name=name, **sla)
            session.add(group)
            await session.flush()
            return group.id

    return add


@pytest.fixture
def add_actor(session_maker):
    async def add(actor_id, name):
        async with unit_of_work(session_maker()) as session:
            session.add(ActorModel(id=actor_id, name=name))

    return add


@pytest.fixture
def add_ticket(session_maker):
    """Insert a ticket row directly, bypassing the lifecycle rules."""

    async def add(**values):
        values.setdefault("title", "Printer on fire")
        values.setdefault("status", "open")
        values.setdefault("priority", "medium")
        values.setdefault("created_at", T0)
        values.setdefault("created_by", "user-1")
        values.setdefault("updated_at", T0)
        values.setdefault("tags", [])
        async with unit_of_work(session_maker()) as session:
            ticket = TicketModel(**values)
            session.add(ticket)
            await session.flush()
            return ticket.id

    return add


@pytest.fixture
def load_ticket(session_maker):
    async def load(ticket_id):
        async with unit_of_work(session_maker()) as session:
            return await session.get(TicketModel, UUID(str(ticket_id)))

    return load


@pytest.fixture
async def client(session_maker, clock, calendar_provider):
    app.dependency_overrides[get_session_factory] = lambda: session_maker
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_calendar_provider] = lambda: calendar_provider
    app.dependency_overrides[get_breach_notifier] = lambda: None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
