"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: Core business objects with identity (SLAGroup, SweepResult, BreachNotice)
- Value Objects: Immutable objects defined by attributes (SLAConfig, BusinessCalendar, SLADeadline)
- Domain Services: Stateless business logic (SLACalculator, BreachDetector)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.calculator import BreachDetector, SLACalculator
from src.sla.domain.entities import BreachNotice, SLAGroup, SweepResult
from src.sla.domain.value_objects import (
    BusinessCalendar,
    SLAConfig,
    SLADeadline,
    TimeBucket,
)

__all__ = [
    # Entities
    "SLAGroup",
    "SweepResult",
    "BreachNotice",
    # Value Objects
    "BusinessCalendar",
    "SLAConfig",
    "SLADeadline",
    "TimeBucket",
    # Services
    "SLACalculator",
    "BreachDetector",
]
