"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Lifecycle, SLA and Audit).

Architecture Pattern: Modular Monolith
- Each module (lifecycle, sla, audit) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models are extended within each module

DO NOT add business logic from the modules to the shared kernel.
"""

__version__ = "1.0.0"
