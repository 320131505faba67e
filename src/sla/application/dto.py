"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from src.sla.domain import SLAConfig, SLADeadline, SweepResult

TimeBucketStr = Literal[
    "weekday_business", "weekday_after_hours",
    "weekend_business", "weekend_after_hours"
]


# ========== Request DTOs ==========

class DeadlinePreviewRequest(BaseModel):
    """
    Request for a deadline preview.

    Either a stored group or an inline SLA configuration must be given.
    """
    start_instant: datetime = Field(..., description="Instant the SLA clock nominally starts")
    group_id: Optional[int] = Field(None, description="Group whose SLA configuration applies")
    sla_config: Optional[SLAConfig] = Field(None, description="Inline SLA configuration")

    @model_validator(mode="after")
    def require_config_source(self) -> "DeadlinePreviewRequest":
        if self.group_id is None and self.sla_config is None:
            raise ValueError("either group_id or sla_config is required")
        return self


# ========== Response DTOs ==========

class DeadlinePreviewResponse(BaseModel):
    """Response model describing how a deadline was derived."""
    group_id: Optional[int] = None
    start_instant: datetime
    bucket: TimeBucketStr = Field(..., description="Calendar bucket of the start instant")
    clock_started_at: datetime = Field(..., description="Instant the SLA clock actually started")
    anchored: bool = Field(..., description="Clock moved to the next business opening")
    sla_minutes: int
    deadline: datetime

    @classmethod
    def from_domain(
        cls,
        deadline: SLADeadline,
        group_id: Optional[int] = None
    ) -> "DeadlinePreviewResponse":
        return cls(
            group_id=group_id,
            start_instant=deadline.start,
            bucket=deadline.bucket.value,
            clock_started_at=deadline.clock_started_at,
            anchored=deadline.anchored,
            sla_minutes=deadline.sla_minutes,
            deadline=deadline.deadline
        )


class SweepResultResponse(BaseModel):
    """Response model for a breach sweep run."""
    scanned: int = Field(..., description="Active tickets examined")
    flagged: int = Field(..., description="Tickets newly marked as breached")
    cleared: int = Field(..., description="Tickets whose breach flag was cleared")
    failed: int = Field(..., description="Tickets that could not be evaluated")
    notification_failures: int = Field(default=0, description="Breach notices not delivered")
    failed_ticket_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: SweepResult) -> "SweepResultResponse":
        return cls(**result.to_dict())
