"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, List, Optional

from src.config import ACTIVE_STATUSES, settings
from src.core import (
    Clock,
    ExternalServiceException,
    ResourceNotFoundException,
    utc_now,
)
from src.shared.infrastructure.logging import get_context_logger, log_latency
from src.sla.domain import (
    BreachDetector,
    BreachNotice,
    BusinessCalendar,
    SLACalculator,
    SLAConfig,
    SLADeadline,
    SLAGroup,
    SweepResult,
)

SessionScope = Callable[[], AsyncContextManager[Any]]


# ========== Repository Interfaces (Dependency Inversion) ==========

class IGroupSLARepository(ABC):
    """Interface for reading the SLA configuration of support groups."""

    @abstractmethod
    async def get_group(self, group_id: int) -> Optional[SLAGroup]:
        """Get a group with its SLA durations."""


class ICalendarProvider(ABC):
    """Interface for business calendar access."""

    @abstractmethod
    def get_calendar(self) -> BusinessCalendar:
        """Get current business calendar."""


class IBreachTicketRepository(ABC):
    """Ticket access needed by the breach sweep."""

    @abstractmethod
    async def list_active_ids(self, after_id: Optional[Any], limit: int) -> List[Any]:
        """
        Ids of non-deleted active tickets with a deadline, ordered by id,
        strictly after ``after_id``.
        """

    @abstractmethod
    async def get_for_update(self, ticket_id: Any) -> Optional[Any]:
        """Load a ticket and lock its row until the transaction ends."""

    @abstractmethod
    async def save(self, ticket: Any) -> Any:
        """Persist changes made to a loaded ticket."""


class IBreachNotifier(ABC):
    """Outbound channel announcing newly breached tickets."""

    @abstractmethod
    async def notify_breach(self, notice: BreachNotice) -> None:
        """
        Deliver a breach notice.

        Raises:
            ExternalServiceException: When delivery failed after all attempts
        """


# ========== Application Services ==========

class DeadlineService:
    """
    Resolves the deadline of a ticket from its group's SLA configuration.
    """

    def __init__(
        self,
        group_repository: IGroupSLARepository,
        calendar_provider: ICalendarProvider
    ):
        self._group_repo = group_repository
        self._calendar_provider = calendar_provider

    @property
    def calendar(self) -> BusinessCalendar:
        return self._calendar_provider.get_calendar()

    def preview(self, start_instant: datetime, sla_config: SLAConfig) -> SLADeadline:
        """Explain the deadline an SLA configuration yields for a start instant."""
        return SLACalculator.explain_deadline(start_instant, sla_config, self.calendar)

    async def explain_for_group(
        self,
        group_id: Optional[int],
        start_instant: datetime
    ) -> Optional[SLADeadline]:
        """
        Explain the deadline of a ticket started at ``start_instant`` in a group.

        Returns:
            None when no group is given

        Raises:
            ResourceNotFoundException: If the group does not exist
        """
        if group_id is None:
            return None

        group = await self._group_repo.get_group(group_id)
        if group is None:
            raise ResourceNotFoundException("Group", str(group_id))

        return self.preview(start_instant, group.sla_config)

    async def deadline_for_group(
        self,
        group_id: Optional[int],
        start_instant: datetime
    ) -> Optional[datetime]:
        """Deadline only, see explain_for_group."""
        explanation = await self.explain_for_group(group_id, start_instant)
        return explanation.deadline if explanation else None


class BreachSweepService:
    """
    Periodic batch pass re-evaluating the breach flag of active tickets.

    Tickets are read in keyset-paginated batches and every ticket is
    updated in its own short transaction, so one failing row never
    aborts the sweep.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        repository_factory: Callable[[Any], IBreachTicketRepository],
        notifier: Optional[IBreachNotifier] = None,
        clock: Clock = utc_now,
        batch_size: Optional[int] = None,
        tenant_id: Optional[str] = None
    ):
        self._session_scope = session_scope
        self._repository_factory = repository_factory
        self._notifier = notifier
        self._clock = clock
        self._batch_size = batch_size or settings.breach_sweep_batch_size
        self._tenant_id = tenant_id or settings.default_tenant
        self._logger = get_context_logger(__name__, tenant_id=self._tenant_id)

    async def sweep(self) -> SweepResult:
        """
        Run one sweep over the tenant's active tickets.

        Safe to re-run: tickets whose flag is already correct are left
        untouched.
        """
        result = SweepResult()
        now = self._clock()
        after_id = None

        with log_latency(self._logger, "breach_sweep", tenant_id=self._tenant_id):
            while True:
                async with self._session_scope() as session:
                    batch = await self._repository_factory(session).list_active_ids(
                        after_id, self._batch_size
                    )
                if not batch:
                    break

                for ticket_id in batch:
                    result.scanned += 1
                    await self._sweep_one(ticket_id, now, result)

                after_id = batch[-1]
                if len(batch) < self._batch_size:
                    break

        self._logger.info("Breach sweep finished", extra=result.to_dict())
        return result

    async def _sweep_one(self, ticket_id: Any, now: datetime, result: SweepResult) -> None:
        try:
            notice = await self._update_flag(ticket_id, now, result)
        except Exception as e:
            result.failed += 1
            result.failed_ticket_ids.append(str(ticket_id))
            self._logger.error(
                "Breach sweep failed for ticket",
                extra={"ticket_id": str(ticket_id), "error": str(e)},
                exc_info=True
            )
            return

        if notice is not None and self._notifier is not None:
            try:
                await self._notifier.notify_breach(notice)
            except ExternalServiceException as e:
                result.notification_failures += 1
                self._logger.warning(
                    "Breach notification failed",
                    extra={"ticket_id": notice.ticket_id, "error": e.message}
                )

    async def _update_flag(
        self,
        ticket_id: Any,
        now: datetime,
        result: SweepResult
    ) -> Optional[BreachNotice]:
        """Re-evaluate one ticket; returns a notice when it became breached."""
        async with self._session_scope() as session:
            repository = self._repository_factory(session)
            ticket = await repository.get_for_update(ticket_id)

            # Changed since the batch was read
            if ticket is None or ticket.is_deleted or ticket.status not in ACTIVE_STATUSES:
                return None

            breached = BreachDetector.is_breached(ticket, now)
            if breached == bool(ticket.sla_breach):
                return None

            ticket.sla_breach = breached
            await repository.save(ticket)

        if not breached:
            result.cleared += 1
            return None

        result.flagged += 1
        self._logger.info(
            "Ticket breached its SLA",
            extra={"ticket_id": str(ticket.id), "due_date": ticket.due_date.isoformat()}
        )
        return BreachNotice(
            ticket_id=str(ticket.id),
            title=ticket.title,
            priority=str(getattr(ticket.priority, "value", ticket.priority)),
            status=str(getattr(ticket.status, "value", ticket.status)),
            due_date=ticket.due_date,
            group_id=ticket.group_id,
            assigned_to=ticket.assigned_to,
            tenant_id=self._tenant_id
        )
