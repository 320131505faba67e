"""
Lifecycle Infrastructure Repositories
=====================================

Concrete implementations of repository interfaces using SQLAlchemy.

Storage errors are wrapped into PersistenceException; the enclosing
unit of work rolls the transaction back.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import ACTIVE_STATUSES, ChangeKind, RESOLVED_STATUSES, TicketStatus
from src.core import DurationComputationException, PersistenceException
from src.lifecycle.application.services import IStatusHistoryRepository, ITicketRepository
from src.lifecycle.domain import (
    AssignmentChange,
    CategoryChange,
    StatusChange,
    StatusHistoryEntry,
    TransitionKind,
)
from src.lifecycle.infrastructure.models import ActorModel, StatusHistoryModel, TicketModel
from src.sla.application import IBreachTicketRepository


def _as_uuid(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SQLAlchemyTicketRepository(ITicketRepository, IBreachTicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Serves both the lifecycle service and the breach sweep.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _execute(self, stmt, operation: str):
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException(
                f"Failed to {operation}",
                {"error": str(e)}
            ) from e

    async def _flush(self, operation: str) -> None:
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise PersistenceException(
                f"Failed to {operation}",
                {"error": str(e)}
            ) from e

    async def create(self, values: dict) -> TicketModel:
        """Insert a new ticket."""
        model = TicketModel(id=uuid4(), **values)
        self._session.add(model)
        await self._flush("create ticket")
        return model

    async def get(self, ticket_id: Any, include_deleted: bool = False) -> Optional[TicketModel]:
        """Get ticket by id."""
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = select(TicketModel).where(TicketModel.id == ticket_uuid)
        if not include_deleted:
            stmt = stmt.where(TicketModel.is_deleted.is_(False))

        result = await self._execute(stmt, f"load ticket {ticket_id}")
        return result.scalar_one_or_none()

    async def get_for_update(self, ticket_id: Any) -> Optional[TicketModel]:
        """Get ticket by id, locking its row until the transaction ends."""
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._execute(stmt, f"lock ticket {ticket_id}")
        return result.scalar_one_or_none()

    async def save(self, ticket: TicketModel) -> TicketModel:
        """Flush changes made to a loaded ticket."""
        await self._flush(f"update ticket {ticket.id}")
        return ticket

    async def list_active_ids(self, after_id: Optional[Any], limit: int) -> List[UUID]:
        """Ids of sweepable tickets after ``after_id``, ordered by id."""
        stmt = (
            select(TicketModel.id)
            .where(
                TicketModel.is_deleted.is_(False),
                TicketModel.status.in_([s.value for s in ACTIVE_STATUSES]),
                TicketModel.due_date.is_not(None)
            )
            .order_by(TicketModel.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(TicketModel.id > after_id)

        result = await self._execute(stmt, "list active tickets")
        return list(result.scalars().all())

    async def list_resolved_between(
        self,
        start: datetime,
        end: datetime,
        group_id: Optional[int] = None
    ) -> List[TicketModel]:
        """Non-deleted resolved/closed tickets with resolution_time in [start, end)."""
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.is_deleted.is_(False),
                TicketModel.status.in_([s.value for s in RESOLVED_STATUSES]),
                TicketModel.resolution_time.is_not(None),
                TicketModel.resolution_time >= start,
                TicketModel.resolution_time < end
            )
            .order_by(TicketModel.resolution_time.desc())
        )
        if group_id is not None:
            stmt = stmt.where(TicketModel.group_id == group_id)

        result = await self._execute(stmt, "list resolved tickets")
        return list(result.scalars().all())


class SQLAlchemyStatusHistoryRepository(IStatusHistoryRepository):
    """
    SQLAlchemy implementation of the append-only ticket history.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """Persist a new entry."""
        change = entry.change
        model = StatusHistoryModel(
            ticket_id=_as_uuid(entry.ticket_id),
            kind=change.kind.value,
            previous_status=change.previous_status.value if change.previous_status else None,
            new_status=change.new_status.value,
            changed_by=entry.changed_by,
            changed_at=entry.changed_at,
            time_in_status=entry.time_in_status,
            is_assignment_change=entry.is_assignment_change
        )
        if isinstance(change, AssignmentChange):
            model.previous_assignee = change.from_assignee
            model.new_assignee = change.to_assignee
        elif isinstance(change, CategoryChange):
            model.previous_category_id = change.previous_category_id
            model.new_category_id = change.new_category_id
            model.previous_subcategory_id = change.previous_subcategory_id
            model.new_subcategory_id = change.new_subcategory_id
            model.previous_group_id = change.previous_group_id
            model.new_group_id = change.new_group_id

        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise PersistenceException(
                "Failed to write history entry",
                {"ticket_id": str(entry.ticket_id), "error": str(e)}
            ) from e

        return self.to_domain(model)

    async def last_entered_at(self, ticket_id: Any, status: TicketStatus) -> Optional[datetime]:
        """
        When the ticket entered ``status``, provided no later status change
        has left it since.

        Runs inside a savepoint so a failing lookup leaves the enclosing
        transaction usable.
        """
        stmt = (
            select(StatusHistoryModel.changed_at, StatusHistoryModel.new_status)
            .where(
                StatusHistoryModel.ticket_id == _as_uuid(ticket_id),
                StatusHistoryModel.kind == ChangeKind.STATUS_CHANGE.value,
                or_(
                    StatusHistoryModel.new_status == status.value,
                    StatusHistoryModel.previous_status == status.value
                )
            )
            .order_by(StatusHistoryModel.changed_at.desc(), StatusHistoryModel.id.desc())
            .limit(1)
        )
        try:
            async with self._session.begin_nested():
                row = (await self._session.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise DurationComputationException(
                "Previous status lookup failed",
                {"ticket_id": str(ticket_id), "status": status.value, "error": str(e)}
            ) from e

        # latest change left the status; that stay is already measured
        if row is None or row.new_status != status.value:
            return None
        return row.changed_at

    async def list_for_ticket(self, ticket_id: Any) -> List[StatusHistoryEntry]:
        """Entries most recent first, with the actor's display name."""
        ticket_uuid = _as_uuid(ticket_id)
        if ticket_uuid is None:
            return []

        stmt = (
            select(StatusHistoryModel, ActorModel.name)
            .outerjoin(ActorModel, ActorModel.id == StatusHistoryModel.changed_by)
            .where(StatusHistoryModel.ticket_id == ticket_uuid)
            .order_by(StatusHistoryModel.changed_at.desc(), StatusHistoryModel.id.desc())
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException(
                "Failed to read ticket history",
                {"ticket_id": str(ticket_id), "error": str(e)}
            ) from e

        return [self.to_domain(model, name) for model, name in result.all()]

    @staticmethod
    def _change_of(model: StatusHistoryModel) -> TransitionKind:
        previous = TicketStatus(model.previous_status) if model.previous_status else None
        new = TicketStatus(model.new_status)

        if model.kind == ChangeKind.ASSIGNMENT_CHANGE.value:
            return AssignmentChange(model.previous_assignee, model.new_assignee, new)
        if model.kind == ChangeKind.CATEGORY_CHANGE.value:
            return CategoryChange(
                status=new,
                previous_category_id=model.previous_category_id,
                new_category_id=model.new_category_id,
                previous_subcategory_id=model.previous_subcategory_id,
                new_subcategory_id=model.new_subcategory_id,
                previous_group_id=model.previous_group_id,
                new_group_id=model.new_group_id
            )
        return StatusChange(previous, new)

    @classmethod
    def to_domain(cls, model: StatusHistoryModel, changed_by_name: Optional[str] = None) -> StatusHistoryEntry:
        return StatusHistoryEntry(
            id=model.id,
            ticket_id=model.ticket_id,
            change=cls._change_of(model),
            changed_by=model.changed_by,
            changed_at=model.changed_at,
            time_in_status=model.time_in_status,
            changed_by_name=changed_by_name
        )
