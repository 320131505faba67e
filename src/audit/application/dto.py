"""
Audit Application DTOs
======================
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.audit.domain import AuditLogEntry, RequestMeta


class RequestMetaDTO(BaseModel):
    """Origin of a mutation reported by the caller."""
    ip_address: Optional[str] = Field(None, description="Client address or forwarded-for chain")
    user_agent: Optional[str] = None

    def to_domain(self) -> RequestMeta:
        return RequestMeta.create(self.ip_address, self.user_agent)


class AuditLogCreateRequest(BaseModel):
    """
    Request model for recording an audit entry.

    Required fields are checked by the audit logger so that a missing
    value is reported like any other validation failure.
    """
    entity_type: Optional[str] = Field(None, description="Kind of entity, e.g. 'ticket'")
    entity_id: Optional[str] = Field(None, description="Identifier of the entity")
    action: Optional[str] = Field(None, description="Action tag, e.g. 'status_change'")
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    actor_id: Optional[str] = None
    request_meta: Optional[RequestMetaDTO] = Field(
        None,
        description="Overrides the origin taken from the request headers"
    )


class AuditLogResponse(BaseModel):
    """Response model for an audit entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: str
    action: str
    previous_state: Optional[Any] = None
    new_state: Optional[Any] = None
    actor_id: Optional[str] = None
    occurred_at: datetime
    source_ip: str
    user_agent: str

    @classmethod
    def from_domain(cls, entry: AuditLogEntry) -> "AuditLogResponse":
        return cls.model_validate(entry)
