"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticket-lifecycle-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    default_tenant: str = Field(
        default="public",
        description="Tenant used when a request carries no X-Tenant-ID header"
    )
    tenant_schema_prefix: str = Field(
        default="",
        description="Prefix prepended to the tenant id to build its schema name"
    )

    # ========== Business Calendar ==========
    calendar_config_path: Path = Field(
        default=Path("calendar_config.yaml"),
        description="Path to business calendar YAML file"
    )
    business_day_start: str = Field(default="09:00", description="Opening time (HH:MM, local)")
    business_day_end: str = Field(default="18:00", description="Closing time (HH:MM, local)")
    weekend_days: List[str] = Field(
        default=["saturday", "sunday"],
        description="Days treated as weekend"
    )
    calendar_timezone: str = Field(default="UTC", description="IANA timezone of the tenant calendar")

    # ========== Breach Sweep ==========
    breach_sweep_enabled: bool = Field(default=True, description="Run the periodic breach sweep")
    breach_sweep_interval: int = Field(
        default=300,
        description="Seconds between breach sweeps",
        ge=10
    )
    breach_sweep_batch_size: int = Field(
        default=200,
        description="Tickets read per sweep batch",
        ge=1,
        le=5000
    )
    breach_sweep_tenants: List[str] = Field(
        default=[],
        description="Tenants covered by the scheduled sweep (default tenant when empty)"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for breach notifications"
    )
    slack_channel: str = Field(
        default="#sla-breaches",
        description="Slack channel for breach notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )
    slack_max_attempts: int = Field(
        default=3,
        description="Attempts per notification before giving up",
        ge=1,
        le=10
    )
    slack_retry_delay_seconds: float = Field(
        default=2.0,
        description="Fixed delay between notification attempts",
        ge=0.0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    PENDING = "pending"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    REOPENED = "reopened"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ChangeKind(str, Enum):
    """Kinds of recorded ticket changes."""
    STATUS_CHANGE = "status_change"
    ASSIGNMENT_CHANGE = "assignment_change"
    CATEGORY_CHANGE = "category_change"


class AuditAction(str, Enum):
    """Audit actions emitted by the lifecycle tracker."""
    CREATE = "create"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT_CHANGE = "assignment_change"
    CATEGORY_CHANGE = "category_change"
    DELETE = "delete"


# ========== Lists for validation ==========

TERMINAL_STATUSES = [TicketStatus.CLOSED, TicketStatus.CANCELLED]
RESOLVED_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]
ACTIVE_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS,
    TicketStatus.WAITING, TicketStatus.PENDING,
    TicketStatus.REOPENED
]
VALID_STATUSES = [s.value for s in TicketStatus]
VALID_PRIORITIES = [p.value for p in Priority]
