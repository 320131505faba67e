"""
Audit Domain Layer
==================

Contains:
- Entities: AuditLogEntry, RequestMeta
- Header normalization rules for the request origin
"""

from src.audit.domain.entities import (
    AuditLogEntry,
    MAX_IP_LENGTH,
    MAX_USER_AGENT_LENGTH,
    RequestMeta,
    normalize_ip,
    normalize_user_agent,
)

__all__ = [
    "AuditLogEntry",
    "RequestMeta",
    "MAX_IP_LENGTH",
    "MAX_USER_AGENT_LENGTH",
    "normalize_ip",
    "normalize_user_agent",
]
