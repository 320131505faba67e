"""
Audit Infrastructure Repositories
=================================
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import IAuditLogRepository
from src.audit.domain import AuditLogEntry
from src.audit.infrastructure.models import AuditLogModel
from src.core import PersistenceException


class SQLAlchemyAuditLogRepository(IAuditLogRepository):
    """
    SQLAlchemy implementation of the audit trail.

    Inserts are flushed immediately so that a failing audit write fails
    the enclosing mutation.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Persist a new entry."""
        model = AuditLogModel(
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            previous_state=entry.previous_state,
            new_state=entry.new_state,
            actor_id=entry.actor_id,
            occurred_at=entry.occurred_at,
            source_ip=entry.source_ip,
            user_agent=entry.user_agent
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise PersistenceException(
                "Failed to write audit entry",
                {"entity_type": entry.entity_type, "entity_id": entry.entity_id, "error": str(e)}
            ) from e

        return self.to_domain(model)

    async def list_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 100
    ) -> List[AuditLogEntry]:
        """Entries of one entity, most recent first."""
        stmt = (
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id
            )
            .order_by(AuditLogModel.occurred_at.desc(), AuditLogModel.id.desc())
            .limit(limit)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException(
                "Failed to read audit entries",
                {"entity_type": entity_type, "entity_id": entity_id, "error": str(e)}
            ) from e

        return [self.to_domain(model) for model in result.scalars().all()]

    @staticmethod
    def to_domain(model: AuditLogModel) -> AuditLogEntry:
        return AuditLogEntry(
            id=model.id,
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            action=model.action,
            previous_state=model.previous_state,
            new_state=model.new_state,
            actor_id=model.actor_id,
            occurred_at=model.occurred_at,
            source_ip=model.source_ip,
            user_agent=model.user_agent
        )
