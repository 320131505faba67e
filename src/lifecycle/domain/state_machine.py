"""
Ticket State Machine
====================

Legal status transitions of a ticket.

    open -> in_progress -> waiting/pending <-> in_progress -> resolved -> closed
    resolved -> reopened -> in_progress
    any non-terminal status -> cancelled

``closed`` and ``cancelled`` are terminal.
"""

from typing import Any, Dict, FrozenSet

from src.config import TERMINAL_STATUSES, TicketStatus, VALID_STATUSES
from src.core import InvalidTransitionException, ValidationException

VALID_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED
    }),
    TicketStatus.IN_PROGRESS: frozenset({
        TicketStatus.WAITING, TicketStatus.PENDING,
        TicketStatus.RESOLVED, TicketStatus.CANCELLED
    }),
    TicketStatus.WAITING: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED
    }),
    TicketStatus.PENDING: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED
    }),
    TicketStatus.RESOLVED: frozenset({
        TicketStatus.CLOSED, TicketStatus.REOPENED, TicketStatus.CANCELLED
    }),
    TicketStatus.REOPENED: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED
    }),
    TicketStatus.CLOSED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
}


def parse_status(value: Any, field: str = "status") -> TicketStatus:
    """
    Convert a raw value into a TicketStatus.

    Raises:
        ValidationException: If the value is missing or not a known status
    """
    if value is None or value == "":
        raise ValidationException(f"{field} is required", field=field)
    try:
        return TicketStatus(getattr(value, "value", value))
    except ValueError:
        raise ValidationException(
            f"Unknown {field} '{value}'",
            field=field,
            details={"field": field, "allowed": VALID_STATUSES}
        )


class TicketStateMachine:
    """Validates status transitions against the transition table."""

    @staticmethod
    def allowed_transitions(status: Any) -> FrozenSet[TicketStatus]:
        return VALID_TRANSITIONS[parse_status(status)]

    @staticmethod
    def is_terminal(status: Any) -> bool:
        return parse_status(status) in TERMINAL_STATUSES

    @staticmethod
    def can_transition(current: Any, new: Any) -> bool:
        return parse_status(new) in VALID_TRANSITIONS[parse_status(current)]

    @staticmethod
    def validate_transition(current: Any, new: Any) -> TicketStatus:
        """
        Check that ``new`` is a legal successor of ``current``.

        Returns:
            The target status

        Raises:
            ValidationException: If either status is unknown
            InvalidTransitionException: If the transition is not permitted,
                with the violated rule as its message
        """
        current_status = parse_status(current, "current_status")
        new_status = parse_status(new, "new_status")
        allowed = VALID_TRANSITIONS[current_status]

        if current_status in TERMINAL_STATUSES:
            raise InvalidTransitionException(
                current_status,
                new_status,
                reason=f"Ticket is {current_status.value}; {current_status.value} is a terminal status"
            )

        if new_status == current_status:
            raise InvalidTransitionException(
                current_status,
                new_status,
                reason=f"Ticket is already {current_status.value}"
            )

        if new_status not in allowed:
            successors = ", ".join(sorted(s.value for s in allowed))
            raise InvalidTransitionException(
                current_status,
                new_status,
                reason=(
                    f"Cannot move a ticket from {current_status.value} to {new_status.value}; "
                    f"allowed: {successors}"
                ),
                details={
                    "current_status": current_status.value,
                    "attempted_status": new_status.value,
                    "allowed": sorted(s.value for s in allowed),
                }
            )

        return new_status
