"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core import utc_now
from src.infrastructure.database import Base, UTCDateTime


class SLAGroupModel(Base):
    """
    Database model for support groups and their SLA durations.

    Maps to the 'groups' table. Group management lives outside this
    service; the table is read-only here.
    """
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # SLA durations in minutes
    business_hours_sla: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    after_hours_sla: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekend_business_sla: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekend_after_hours_sla: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_day_start: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "business_hours_sla >= 0 AND after_hours_sla >= 0 "
            "AND weekend_business_sla >= 0 AND weekend_after_hours_sla >= 0",
            name="ck_groups_sla_non_negative"
        ),
    )
