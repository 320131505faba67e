"""
SLA Interfaces Layer
=====================

API endpoints for deadline previews and the breach sweep.
"""

from src.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
