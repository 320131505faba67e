"""
Audit Domain Entities
=====================

Audit trail records and the request metadata attached to them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 255
UNKNOWN = "unknown"


def normalize_ip(value: Optional[str]) -> str:
    """
    Bound a client address to MAX_IP_LENGTH characters.

    An over-long forwarded-for chain is reduced to its first address
    before truncation.
    """
    if value is None or not value.strip():
        return UNKNOWN
    value = value.strip()
    if len(value) > MAX_IP_LENGTH:
        value = value.split(",")[0].strip()
    return value[:MAX_IP_LENGTH]


def normalize_user_agent(value: Optional[str]) -> str:
    if value is None or not value.strip():
        return UNKNOWN
    return value[:MAX_USER_AGENT_LENGTH]


@dataclass(frozen=True)
class RequestMeta:
    """Origin of the request that triggered a mutation."""

    source_ip: str = UNKNOWN
    user_agent: str = UNKNOWN

    @classmethod
    def create(cls, source_ip: Optional[str] = None, user_agent: Optional[str] = None) -> "RequestMeta":
        return cls(
            source_ip=normalize_ip(source_ip),
            user_agent=normalize_user_agent(user_agent)
        )

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RequestMeta":
        """
        Build request metadata from HTTP headers.

        The client address comes from X-Forwarded-For, then X-Real-IP.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        source_ip = lowered.get("x-forwarded-for") or lowered.get("x-real-ip")
        return cls.create(source_ip, lowered.get("user-agent"))


@dataclass(frozen=True)
class AuditLogEntry:
    """
    Immutable audit record.

    Snapshots are opaque JSON-compatible payloads; their shape belongs to
    the producer.
    """

    entity_type: str
    entity_id: str
    action: str
    occurred_at: datetime
    previous_state: Optional[Any] = None
    new_state: Optional[Any] = None
    actor_id: Optional[str] = None
    source_ip: str = UNKNOWN
    user_agent: str = UNKNOWN
    id: Optional[int] = None
