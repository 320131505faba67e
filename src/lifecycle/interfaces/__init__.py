"""
Lifecycle Interfaces Layer
==========================

API endpoints for tickets and their status history.
"""

from src.lifecycle.interfaces.controllers import lifecycle_router

__all__ = ["lifecycle_router"]
