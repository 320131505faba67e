"""
Ticket Lifecycle Module
=======================

Bounded Context for the lifecycle of support tickets.

Responsibilities:
- Own the legal status transitions of a ticket
- Append an immutable history entry for every status, assignment
  and category change, with the time spent in the previous status
- Stamp resolution time and freeze the SLA breach flag on resolution
- Recompute the SLA deadline when the ticket's group changes
- Write an audit entry in the same transaction as every mutation
"""

__version__ = "1.0.0"
