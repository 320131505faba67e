"""
Audit Application Layer
=======================
"""

from src.audit.application.dto import (
    AuditLogCreateRequest,
    AuditLogResponse,
    RequestMetaDTO,
)
from src.audit.application.services import AuditLogger, IAuditLogRepository, to_snapshot

__all__ = [
    "AuditLogCreateRequest",
    "AuditLogResponse",
    "RequestMetaDTO",
    "AuditLogger",
    "IAuditLogRepository",
    "to_snapshot",
]
