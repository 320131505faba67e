"""
Audit Interfaces Layer
======================
"""

from src.audit.interfaces.controllers import audit_router

__all__ = ["audit_router"]
