"""
SLA Module
==========

Bounded Context for service level deadlines and breach detection.

Responsibilities:
- Classify an instant into a business calendar bucket
- Compute due dates from a group's SLA configuration, starting the
  clock at the next business opening for after-hours tickets
- Flag tickets whose deadline has passed, on read and by a periodic sweep
- Announce new breaches on Slack
- Hot-reload the business calendar via watchdog
"""

__version__ = "1.0.0"
