"""
Audit Module
============

Bounded Context for the generic audit trail.

Responsibilities:
- Record before/after snapshots of any entity mutation
- Capture the actor and request origin (IP address, user agent)
- Serve the trail of an entity for compliance export

Entries are append-only.
"""

__version__ = "1.0.0"
