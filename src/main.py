"""
Ticket Lifecycle Service - Main Application
===========================================

Multi-tenant support-ticket lifecycle tracker.

Modules:
- Lifecycle: Ticket state machine and append-only status history
- SLA: Business calendar deadlines and breach detection
- Audit: Before/after snapshots of every mutation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and pure rules
- Infrastructure: Database, calendar config, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from src.config import settings
from src.core import ApplicationException, utc_now

# Infrastructure
from src.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
    tenant_scope,
)

# Module services and adapters
from src.lifecycle.infrastructure import SQLAlchemyTicketRepository
from src.sla.application import BreachSweepService
from src.sla.infrastructure import (
    BreachSweepScheduler,
    CalendarConfigManager,
    SlackBreachNotifier,
)

# Module Routers
from src.audit.interfaces import audit_router
from src.lifecycle.interfaces import lifecycle_router
from src.sla.interfaces import sla_router

# Logging and HTTP plumbing
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
    request_validation_exception_handler,
)
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def sweep_tenants() -> list:
    return settings.breach_sweep_tenants or [settings.default_tenant]


def build_sweep_job(notifier):
    """Scheduled job sweeping every configured tenant in turn."""

    async def breach_sweep_job():
        session_maker = get_session_maker()
        for tenant_id in sweep_tenants():
            service = BreachSweepService(
                tenant_scope(session_maker, tenant_id),
                SQLAlchemyTicketRepository,
                notifier=notifier,
                clock=utc_now,
                tenant_id=tenant_id
            )
            try:
                await service.sweep()
            except ApplicationException as e:
                # The next run retries; other tenants still get swept
                logger.error(
                    "Breach sweep aborted for tenant",
                    extra={"tenant_id": tenant_id, "error": e.message, "details": e.details}
                )

    return breach_sweep_job


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Load business calendar configuration
    5. Create Slack notifier (when configured)
    6. Start breach sweep scheduler

    SHUTDOWN:
    1. Stop breach sweep scheduler
    2. Stop calendar config watcher
    3. Close Slack client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Ticket Lifecycle Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use Alembic in production)
    logger.info("Creating database tables")
    await create_tables()

    logger.info("Loading business calendar configuration")
    calendar_manager = CalendarConfigManager()
    calendar_manager.load(settings.calendar_config_path)
    calendar_manager.start_watching()

    notifier = None
    if settings.slack_webhook_url:
        notifier = SlackBreachNotifier(settings.slack_webhook_url)
    else:
        logger.info("Slack webhook not configured - breach notifications disabled")

    scheduler = None
    if settings.breach_sweep_enabled:
        scheduler = BreachSweepScheduler(interval_seconds=settings.breach_sweep_interval)
        await scheduler.start(build_sweep_job(notifier))

    # Store services in app state for dependency injection
    app.state.calendar_provider = calendar_manager
    app.state.breach_notifier = notifier
    app.state.sweep_scheduler = scheduler

    logger.info("Ticket Lifecycle Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Ticket Lifecycle Service")

    if scheduler:
        await scheduler.stop()

    calendar_manager.stop_watching()

    if notifier:
        await notifier.close()

    await close_database()

    logger.info("Ticket Lifecycle Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Ticket Lifecycle API",
    description="""
    ## Multi-tenant Support Ticket Lifecycle Tracker

    Every request is scoped to the tenant named in the `X-Tenant-ID` header.

    ---

    ### Tickets

    - `POST /tickets` - Create a ticket
    - `GET /tickets/{id}` - Get a ticket (breach evaluated on read)
    - `POST /tickets/{id}/transitions` - Change status
    - `POST /tickets/{id}/resolve` - Resolve with notes
    - `POST /tickets/{id}/assignment` - Reassign
    - `POST /tickets/{id}/group` - Move to another category or group
    - `DELETE /tickets/{id}` - Soft delete
    - `GET /tickets/{id}/status-history` - Append-only history
    - `POST /tickets/status-history` - Append a history entry
    - `GET /tickets/resolution-analysis` - Resolution times in a date range

    ### SLA

    - `POST /sla/deadline` - Explain the deadline of a start instant
    - `POST /sla/sweep` - Run the breach sweep now

    Deadlines follow the group's SLA minutes for the calendar bucket of the
    start instant (weekday/weekend, business/after hours). With
    `next_day_start`, after-hours tickets start their clock at the next
    business opening.

    ### Audit

    - `POST /audit/logs` - Record an audit entry
    - `GET /audit/logs` - Entries of an entity

    ---

    ### Errors

    | Status | Meaning |
    |--------|---------|
    | 400 | Validation failed |
    | 404 | Resource not found |
    | 409 | Transition not permitted |
    | 503 | Storage unavailable |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
# Added last runs first: the correlation id is set before logging reads it
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(lifecycle_router)
app.include_router(sla_router)
app.include_router(audit_router)

# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "calendar_config": "watching",
                        "breach_sweep": "running",
                        "slack_notifier": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Calendar configuration state
    - Breach sweep scheduler state
    - Slack notifier availability
    """
    state = request.app.state
    calendar_manager = getattr(state, "calendar_provider", None)
    scheduler = getattr(state, "sweep_scheduler", None)

    if isinstance(calendar_manager, CalendarConfigManager) and calendar_manager.is_watching:
        calendar_status = "watching"
    else:
        calendar_status = "loaded" if calendar_manager else "defaults"

    checks = {
        "calendar_config": calendar_status,
        "breach_sweep": "running" if scheduler and scheduler.is_running else "stopped",
        "slack_notifier": "configured" if getattr(state, "breach_notifier", None) else "not_configured"
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"], responses={
    200: {
        "description": "API information",
        "content": {
            "application/json": {
                "example": {
                    "service": "Ticket Lifecycle Service",
                    "version": "1.0.0",
                    "architecture": "Clean Architecture / Modular Monolith",
                    "docs": "/docs",
                    "health": "/health"
                }
            }
        }
    }
})
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Ticket Lifecycle Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "lifecycle": {"prefix": "/tickets"},
            "sla": {"prefix": "/sla"},
            "audit": {"prefix": "/audit"}
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
