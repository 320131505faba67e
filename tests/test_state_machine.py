import pytest

from src.config import TicketStatus
from src.core import InvalidTransitionException, ValidationException
from src.lifecycle.domain import TicketStateMachine, VALID_TRANSITIONS


LEGAL = [
    ("open", "in_progress"),
    ("open", "cancelled"),
    ("in_progress", "waiting"),
    ("in_progress", "pending"),
    ("in_progress", "resolved"),
    ("in_progress", "cancelled"),
    ("waiting", "in_progress"),
    ("pending", "in_progress"),
    ("pending", "cancelled"),
    ("resolved", "closed"),
    ("resolved", "reopened"),
    ("resolved", "cancelled"),
    ("reopened", "in_progress"),
    ("reopened", "cancelled"),
]

ILLEGAL = [
    ("open", "resolved"),
    ("open", "waiting"),
    ("open", "closed"),
    ("waiting", "resolved"),
    ("in_progress", "closed"),
    ("in_progress", "reopened"),
    ("reopened", "resolved"),
    ("resolved", "in_progress"),
]


@pytest.mark.parametrize("current, new", LEGAL)
def test_legal_transitions(current, new):
    assert TicketStateMachine.validate_transition(current, new) == TicketStatus(new)
    assert TicketStateMachine.can_transition(current, new)


@pytest.mark.parametrize("current, new", ILLEGAL)
def test_illegal_transitions(current, new):
    assert not TicketStateMachine.can_transition(current, new)
    with pytest.raises(InvalidTransitionException) as exc_info:
        TicketStateMachine.validate_transition(current, new)

    assert exc_info.value.current_status == current
    assert exc_info.value.attempted_status == new
    assert exc_info.value.details["allowed"] == sorted(
        s.value for s in VALID_TRANSITIONS[TicketStatus(current)]
    )


@pytest.mark.parametrize("terminal", ["closed", "cancelled"])
def test_terminal_statuses_accept_nothing(terminal):
    assert TicketStateMachine.is_terminal(terminal)
    assert TicketStateMachine.allowed_transitions(terminal) == frozenset()

    for status in TicketStatus:
        with pytest.raises(InvalidTransitionException, match="terminal"):
            TicketStateMachine.validate_transition(terminal, status)


def test_same_status_is_rejected():
    with pytest.raises(InvalidTransitionException, match="already in_progress"):
        TicketStateMachine.validate_transition("in_progress", "in_progress")


def test_open_to_resolved_message_names_successors():
    with pytest.raises(InvalidTransitionException) as exc_info:
        TicketStateMachine.validate_transition("open", "resolved")
    assert "allowed: cancelled, in_progress" in exc_info.value.message


@pytest.mark.parametrize("value", [None, "", "done"])
def test_unknown_status_is_a_validation_error(value):
    with pytest.raises(ValidationException):
        TicketStateMachine.validate_transition("open", value)


def test_accepts_enum_members():
    assert TicketStateMachine.validate_transition(
        TicketStatus.IN_PROGRESS, TicketStatus.PENDING
    ) == TicketStatus.PENDING


def test_every_status_has_a_row():
    assert set(VALID_TRANSITIONS) == set(TicketStatus)
