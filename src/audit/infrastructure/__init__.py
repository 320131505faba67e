"""
Audit Infrastructure Layer
==========================
"""

from src.audit.infrastructure.models import AuditLogModel
from src.audit.infrastructure.repositories import SQLAlchemyAuditLogRepository

__all__ = [
    "AuditLogModel",
    "SQLAlchemyAuditLogRepository",
]
