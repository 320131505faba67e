"""
Audit Infrastructure Models
===========================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core import utc_now
from src.infrastructure.database import Base, UTCDateTime


class AuditLogModel(Base):
    """
    Database model for audit entries.

    Maps to the 'audit_logs' table. Rows are inserted only.
    """
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)

    # Opaque snapshots
    previous_state: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    new_state: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    actor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    source_ip: Mapped[str] = mapped_column(String(45), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
