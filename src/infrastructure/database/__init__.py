"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 with asyncpg for async PostgreSQL operations.
Every tenant owns a schema; sessions opened for a tenant translate the
unqualified table names of the models into that schema.
"""

import re
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings
from src.core import PersistenceException, ValidationException
from src.infrastructure.database.types import UTCDateTime


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    All models inherit from this class.
    """
    pass


_TENANT_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,63}$")

# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the database engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine

    Raises:
        RuntimeError: If engine has not been initialized
    """
    global _engine
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine and session maker.

    Should be called during application startup.

    Returns:
        AsyncEngine: The initialized engine
    """
    global _engine, _session_maker

    # Fix asyncpg SSL: replace sslmode with ssl for asyncpg compatibility
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["max_overflow"] = settings.db_max_overflow

    _engine = create_async_engine(url, **engine_kwargs)

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading after commit
        autoflush=False,
    )

    return _engine


async def close_database() -> None:
    """
    Close the database engine and dispose of connections.

    Should be called during application shutdown.
    """
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


def tenant_schema(tenant_id: str) -> Optional[str]:
    """
    Resolve the schema holding a tenant's tables.

    The default tenant lives in the database's default schema.

    Raises:
        ValidationException: If the tenant id is not a safe identifier
    """
    if not tenant_id or not _TENANT_PATTERN.match(tenant_id):
        raise ValidationException(f"Invalid tenant id: {tenant_id!r}", field="tenant_id")
    if tenant_id == settings.default_tenant:
        return None
    return f"{settings.tenant_schema_prefix}{tenant_id}"


def open_tenant_session(
    session_maker: async_sessionmaker[AsyncSession],
    tenant_id: str
) -> AsyncSession:
    """Create a session whose statements run against the tenant schema."""
    schema = tenant_schema(tenant_id)
    if schema is None:
        return session_maker()
    engine = session_maker.kw["bind"]
    return session_maker(
        bind=engine.execution_options(schema_translate_map={None: schema})
    )


async def commit(session: AsyncSession) -> None:
    """Commit the session, surfacing storage failures as PersistenceException."""
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceException(
            "Database transaction failed",
            {"error": str(e)}
        ) from e


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Commit the session on success, roll it back on any error.

    Storage failures surface as PersistenceException; nothing is
    committed in that case.
    """
    async with session:
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceException(
                "Database transaction failed",
                {"error": str(e)}
            ) from e
        except Exception:
            await session.rollback()
            raise
        await commit(session)


def tenant_scope(
    session_maker: async_sessionmaker[AsyncSession],
    tenant_id: str
) -> Callable[[], AsyncContextManager[AsyncSession]]:
    """
    Build a factory of independent units of work for one tenant.

    Background jobs use it to run many short transactions.
    """
    tenant_schema(tenant_id)

    def scope() -> AsyncContextManager[AsyncSession]:
        return unit_of_work(open_tenant_session(session_maker, tenant_id))

    return scope


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the configured session maker."""
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


async def create_tables() -> None:
    """
    Create all database tables.

    This should only be used for development/testing.
    Production should use migrations (Alembic).
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "UTCDateTime",
    "init_database",
    "close_database",
    "get_engine",
    "get_session_maker",
    "open_tenant_session",
    "tenant_schema",
    "tenant_scope",
    "unit_of_work",
    "commit",
    "create_tables",
]
