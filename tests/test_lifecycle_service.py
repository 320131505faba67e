from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from src.audit.application import AuditLogger
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.config import ChangeKind, TicketStatus
from src.core import (
    InvalidTransitionException,
    PersistenceException,
    ResourceNotFoundException,
    ValidationException,
)
from src.infrastructure.database import unit_of_work
from src.lifecycle.application import (
    StatusHistoryRecorder,
    TicketCreateRequest,
    TicketLifecycleService,
)
from src.lifecycle.infrastructure import (
    SQLAlchemyStatusHistoryRepository,
    SQLAlchemyTicketRepository,
    TicketModel,
)
from src.sla.application import DeadlineService
from src.sla.infrastructure import SQLAlchemyGroupSLARepository


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def group_id(add_group):
    return await add_group(business_hours_sla=480, after_hours_sla=240, next_day_start=True)


@pytest.fixture
def create(lifecycle):
    async def create(**fields):
        fields.setdefault("title", "VPN down")
        fields.setdefault("created_by", "user-1")
        async with lifecycle() as service:
            ticket, _ = await service.create_ticket(TicketCreateRequest(**fields))
        return ticket

    return create


@pytest.fixture
def history(lifecycle):
    async def history(ticket_id):
        async with lifecycle() as service:
            return await service.history(ticket_id)

    return history


@pytest.fixture
def audit_entries(session_maker):
    async def entries(ticket_id):
        async with unit_of_work(session_maker()) as session:
            return await SQLAlchemyAuditLogRepository(session).list_for_entity("ticket", str(ticket_id))

    return entries


# ========== create ==========

async def test_create_during_business_hours(create, history, audit_entries, group_id):
    ticket = await create(group_id=group_id)

    assert ticket.status == "open"
    assert ticket.due_date == utc(2024, 3, 20, 17, 0)
    assert ticket.sla_breach is False

    entries = await history(ticket.id)
    assert len(entries) == 1
    assert entries[0].previous_status is None
    assert entries[0].new_status == TicketStatus.OPEN
    assert entries[0].changed_by == "user-1"

    audit = await audit_entries(ticket.id)
    assert [e.action for e in audit] == ["create"]
    assert audit[0].previous_state is None
    assert audit[0].new_state["status"] == "open"


async def test_create_after_hours_anchors_to_next_opening(create, clock, group_id):
    clock.set(utc(2024, 3, 20, 20, 0))
    ticket = await create(group_id=group_id)
    assert ticket.due_date == utc(2024, 3, 21, 17, 0)


async def test_create_without_group_has_no_deadline(create):
    ticket = await create()
    assert ticket.due_date is None


async def test_create_with_unknown_group_writes_nothing(create, session_maker):
    with pytest.raises(ResourceNotFoundException):
        await create(group_id=999)

    async with unit_of_work(session_maker()) as session:
        count = await session.scalar(select(func.count()).select_from(TicketModel))
    assert count == 0


async def test_create_requires_creator(create):
    with pytest.raises(ValidationException):
        await create(created_by=None)


# ========== transition ==========

async def test_transition_records_time_in_previous_status(create, lifecycle, history, clock):
    ticket = await create()
    clock.advance(minutes=45)

    async with lifecycle() as service:
        updated, entry = await service.transition(ticket.id, "in_progress", "agent-7")

    assert updated.status == "in_progress"
    assert updated.updated_by == "agent-7"
    assert entry.time_in_status == 2700
    assert entry.previous_status == TicketStatus.OPEN

    entries = await history(ticket.id)
    assert [e.new_status for e in entries] == [TicketStatus.IN_PROGRESS, TicketStatus.OPEN]


async def test_time_in_status_never_exceeds_ticket_age(create, lifecycle, history, clock):
    ticket = await create()
    for minutes, status in ((20, "in_progress"), (35, "waiting"), (5, "in_progress"), (50, "resolved")):
        clock.advance(minutes=minutes)
        async with lifecycle() as service:
            await service.transition(ticket.id, status, "agent-7")

    entries = await history(ticket.id)
    durations = [e.time_in_status for e in entries if e.time_in_status is not None]

    # in_progress was re-entered, so its second stay is measured from the re-entry
    assert sorted(durations) == [300, 1200, 2100, 3000]
    assert sum(durations) <= (clock() - ticket.created_at).total_seconds()


async def test_illegal_transition_changes_nothing(create, lifecycle, history, audit_entries, load_ticket):
    ticket = await create()

    with pytest.raises(InvalidTransitionException):
        async with lifecycle() as service:
            await service.transition(ticket.id, "resolved", "agent-7")

    assert (await load_ticket(ticket.id)).status == "open"
    assert len(await history(ticket.id)) == 1
    assert len(await audit_entries(ticket.id)) == 1


async def test_transition_requires_actor(create, lifecycle):
    ticket = await create()
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.transition(ticket.id, "in_progress", None)


async def test_transition_unknown_ticket(lifecycle):
    with pytest.raises(ResourceNotFoundException):
        async with lifecycle() as service:
            await service.transition("0b7e1d3c-2a4f-4e5b-9c8d-7f6a5b4c3d2e", "in_progress", "agent-7")


async def test_failed_history_write_rolls_back_transition(
    create, session_maker, clock, calendar_provider, load_ticket, audit_entries
):
    class UnavailableHistory(SQLAlchemyStatusHistoryRepository):
        async def add(self, entry):
            raise PersistenceException("history store unavailable")

    ticket = await create()

    with pytest.raises(PersistenceException):
        async with unit_of_work(session_maker()) as session:
            service = TicketLifecycleService(
                SQLAlchemyTicketRepository(session),
                StatusHistoryRecorder(UnavailableHistory(session), clock),
                AuditLogger(SQLAlchemyAuditLogRepository(session), clock),
                DeadlineService(SQLAlchemyGroupSLARepository(session), calendar_provider),
                clock
            )
            await service.transition(ticket.id, "in_progress", "agent-7")

    assert (await load_ticket(ticket.id)).status == "open"
    assert len(await audit_entries(ticket.id)) == 1


async def test_cancel_recomputes_breach_flag(add_ticket, lifecycle, clock):
    ticket_id = await add_ticket(
        status="in_progress", sla_breach=True, due_date=clock() + timedelta(hours=1)
    )
    async with lifecycle() as service:
        ticket, _ = await service.transition(ticket_id, "cancelled", "agent-7")

    assert ticket.status == "cancelled"
    assert ticket.sla_breach is False


async def test_cancelled_ticket_breaches_once_deadline_passes(add_ticket, lifecycle, clock):
    ticket_id = await add_ticket(status="in_progress", due_date=clock() + timedelta(hours=1))
    async with lifecycle() as service:
        await service.transition(ticket_id, "cancelled", "agent-7")

    clock.advance(hours=5)
    async with lifecycle() as service:
        ticket = await service.get_ticket(ticket_id)
        assert service.current_breach(ticket) is True


async def test_reopen_clears_resolution(add_ticket, lifecycle, clock):
    ticket_id = await add_ticket(
        status="resolved",
        resolution_time=clock() - timedelta(hours=1),
        resolution_notes="Rebooted",
        resolved_by="agent-7",
        due_date=clock() + timedelta(hours=4)
    )
    async with lifecycle() as service:
        ticket, entry = await service.transition(ticket_id, "reopened", "user-1")

    assert ticket.resolution_time is None
    assert ticket.resolved_by is None
    assert ticket.sla_breach is False
    assert entry.previous_status == TicketStatus.RESOLVED


# ========== resolve ==========

async def test_resolve_freezes_resolution(create, lifecycle, clock, group_id):
    ticket = await create(group_id=group_id, tags=["vpn"])
    async with lifecycle() as service:
        await service.transition(ticket.id, "in_progress", "agent-7")
    clock.advance(hours=2)

    async with lifecycle() as service:
        resolved = await service.resolve(ticket.id, "  Restarted tunnel  ", "agent-7", ["vpn", "network"])

    assert resolved.status == "resolved"
    assert resolved.resolution_time == clock()
    assert resolved.resolution_notes == "Restarted tunnel"
    assert resolved.resolved_by == "agent-7"
    assert resolved.tags == ["vpn", "network"]
    assert resolved.sla_breach is False


async def test_resolve_after_deadline_is_breached(create, lifecycle, clock, group_id):
    ticket = await create(group_id=group_id)
    async with lifecycle() as service:
        await service.transition(ticket.id, "in_progress", "agent-7")
    clock.advance(hours=9)

    async with lifecycle() as service:
        resolved = await service.resolve(ticket.id, "Replaced router", "agent-7")

    assert resolved.sla_breach is True
    assert resolved.tags == []


@pytest.mark.parametrize("notes", [None, "", "   "])
async def test_resolve_requires_notes(add_ticket, lifecycle, notes):
    ticket_id = await add_ticket(status="in_progress")
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.resolve(ticket_id, notes, "agent-7")


async def test_resolve_closed_ticket(add_ticket, lifecycle):
    ticket_id = await add_ticket(status="closed")
    with pytest.raises(InvalidTransitionException):
        async with lifecycle() as service:
            await service.resolve(ticket_id, "Again", "agent-7")


# ========== reassign ==========

async def test_reassign_keeps_status(add_ticket, lifecycle, audit_entries):
    ticket_id = await add_ticket(status="in_progress", assigned_to="agent-7")
    async with lifecycle() as service:
        entry = await service.reassign(ticket_id, "agent-9", "lead-1")
        ticket = await service.get_ticket(ticket_id)

    assert ticket.status == "in_progress"
    assert ticket.assigned_to == "agent-9"
    assert entry.is_assignment_change
    assert entry.kind == ChangeKind.ASSIGNMENT_CHANGE
    assert entry.change.from_assignee == "agent-7"
    assert entry.change.to_assignee == "agent-9"
    assert entry.time_in_status is None
    assert [e.action for e in await audit_entries(ticket_id)] == ["assignment_change"]


async def test_reassign_to_nobody(add_ticket, lifecycle):
    ticket_id = await add_ticket(assigned_to="agent-7")
    async with lifecycle() as service:
        entry = await service.reassign(ticket_id, None, "lead-1")
    assert entry.change.to_assignee is None


async def test_reassign_same_assignee(add_ticket, lifecycle):
    ticket_id = await add_ticket(assigned_to="agent-7")
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.reassign(ticket_id, "agent-7", "lead-1")


async def test_reassign_terminal_ticket(add_ticket, lifecycle):
    ticket_id = await add_ticket(status="cancelled")
    with pytest.raises(InvalidTransitionException):
        async with lifecycle() as service:
            await service.reassign(ticket_id, "agent-9", "lead-1")


# ========== change_group ==========

async def test_change_group_recomputes_deadline(create, lifecycle, add_group, clock, group_id):
    ticket = await create(group_id=group_id, category_id=1)
    fast_group = await add_group(name="Security", business_hours_sla=120)
    clock.advance(hours=3)

    async with lifecycle() as service:
        updated, entry = await service.change_group(ticket.id, fast_group, 2, 5, "lead-1")

    assert updated.due_date == utc(2024, 3, 20, 11, 0)
    assert updated.sla_breach is True
    assert updated.category_id == 2
    assert entry.kind == ChangeKind.CATEGORY_CHANGE
    assert entry.change.previous_group_id == group_id
    assert entry.change.new_group_id == fast_group
    assert entry.new_status == TicketStatus.OPEN


async def test_change_category_only_keeps_deadline(create, lifecycle, group_id):
    ticket = await create(group_id=group_id, category_id=1)
    async with lifecycle() as service:
        updated, entry = await service.change_group(ticket.id, group_id, 3, None, "lead-1")

    assert updated.due_date == ticket.due_date
    assert not entry.change.group_changed


async def test_unchanged_group_is_a_noop(create, lifecycle, history, group_id):
    ticket = await create(group_id=group_id)
    async with lifecycle() as service:
        _, entry = await service.change_group(ticket.id, group_id, None, None, "lead-1")

    assert entry is None
    assert len(await history(ticket.id)) == 1


async def test_change_to_unknown_group(create, lifecycle, load_ticket, group_id):
    ticket = await create(group_id=group_id)
    with pytest.raises(ResourceNotFoundException):
        async with lifecycle() as service:
            await service.change_group(ticket.id, 999, None, None, "lead-1")

    assert (await load_ticket(ticket.id)).group_id == group_id


# ========== soft_delete ==========

async def test_soft_delete_hides_ticket(create, lifecycle, load_ticket, audit_entries):
    ticket = await create()
    async with lifecycle() as service:
        await service.soft_delete(ticket.id, "admin-1")

    assert (await load_ticket(ticket.id)).is_deleted is True
    assert [e.action for e in await audit_entries(ticket.id)] == ["delete", "create"]

    with pytest.raises(ResourceNotFoundException):
        async with lifecycle() as service:
            await service.get_ticket(ticket.id)
    with pytest.raises(ResourceNotFoundException):
        async with lifecycle() as service:
            await service.transition(ticket.id, "in_progress", "agent-7")


async def test_soft_delete_requires_actor(create, lifecycle):
    ticket = await create()
    with pytest.raises(ValidationException) as exc_info:
        async with lifecycle() as service:
            await service.soft_delete(ticket.id, "")
    assert exc_info.value.field == "deleted_by"


# ========== record_history ==========

async def test_record_history_does_not_touch_ticket(create, lifecycle, load_ticket):
    ticket = await create()
    async with lifecycle() as service:
        entry = await service.record_history(str(ticket.id), "open", "in_progress", "agent-7")

    assert entry.new_status == TicketStatus.IN_PROGRESS
    assert entry.id is not None
    assert (await load_ticket(ticket.id)).status == "open"


async def test_record_assignment_history(create, lifecycle):
    ticket = await create()
    async with lifecycle() as service:
        entry = await service.record_history(
            ticket.id, None, "open", "lead-1",
            is_assignment_change=True, previous_assignee=None, new_assignee="agent-7"
        )

    assert entry.is_assignment_change
    assert entry.change.to_assignee == "agent-7"


async def test_record_category_history(create, lifecycle, load_ticket):
    ticket = await create(category_id=1)
    async with lifecycle() as service:
        entry = await service.record_history(
            ticket.id, None, "open", "lead-1",
            is_category_change=True,
            category_ids={"previous_category_id": 1, "new_category_id": 2}
        )

    assert entry.kind == ChangeKind.CATEGORY_CHANGE
    assert entry.change.new_category_id == 2
    assert entry.time_in_status is None
    assert (await load_ticket(ticket.id)).category_id == 1


@pytest.mark.parametrize("new_status, actor", [
    (None, "agent-7"),
    ("", "agent-7"),
    ("done", "agent-7"),
    ("in_progress", None),
])
async def test_record_history_validation(create, lifecycle, history, new_status, actor):
    ticket = await create()
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.record_history(ticket.id, "open", new_status, actor)

    assert len(await history(ticket.id)) == 1


@pytest.mark.parametrize("ticket_id", ["not-a-uuid", "0b7e1d3c-2a4f-4e5b-9c8d-7f6a5b4c3d2e"])
async def test_record_history_unknown_ticket(lifecycle, ticket_id):
    with pytest.raises(ResourceNotFoundException):
        async with lifecycle() as service:
            await service.record_history(ticket_id, "open", "in_progress", "agent-7")


async def test_record_history_requires_ticket_id(lifecycle):
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.record_history(None, "open", "in_progress", "agent-7")


# ========== resolution_analysis ==========

async def test_resolution_analysis(add_ticket, lifecycle, clock, group_id):
    created = clock()
    in_range = created + timedelta(hours=2)
    await add_ticket(status="resolved", resolution_time=in_range, group_id=group_id)
    await add_ticket(status="closed", resolution_time=in_range + timedelta(hours=2), sla_breach=True)
    await add_ticket(status="resolved", resolution_time=created + timedelta(days=3))
    await add_ticket(status="resolved", resolution_time=in_range, is_deleted=True)
    await add_ticket(status="in_progress")

    start, end = created, created + timedelta(days=1)
    async with lifecycle() as service:
        report = await service.resolution_analysis(start, end)
        by_group = await service.resolution_analysis(start, end, group_id)

    assert report.count == 2
    assert report.breached_count == 1
    assert [item.resolution_minutes for item in report.tickets] == [240.0, 120.0]
    assert report.average_resolution_minutes == 180.0
    assert by_group.count == 1


async def test_resolution_analysis_empty_range(lifecycle, clock):
    async with lifecycle() as service:
        report = await service.resolution_analysis(clock(), clock() + timedelta(days=1))
    assert report.count == 0
    assert report.average_resolution_minutes is None


async def test_resolution_analysis_rejects_inverted_range(lifecycle, clock):
    with pytest.raises(ValidationException):
        async with lifecycle() as service:
            await service.resolution_analysis(clock(), clock() - timedelta(days=1))
