"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import PersistenceException
from src.sla.application import IGroupSLARepository
from src.sla.domain import SLAConfig, SLAGroup
from src.sla.infrastructure.models import SLAGroupModel


class SQLAlchemyGroupSLARepository(IGroupSLARepository):
    """
    SQLAlchemy implementation of the group SLA read model.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_group(self, group_id: int) -> Optional[SLAGroup]:
        """Get a group with its SLA durations."""
        stmt = select(SLAGroupModel).where(SLAGroupModel.id == group_id)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException(
                f"Failed to load group {group_id}",
                {"error": str(e)}
            ) from e

        model = result.scalar_one_or_none()
        if model is None:
            return None
        return self.to_domain(model)

    @staticmethod
    def to_domain(model: SLAGroupModel) -> SLAGroup:
        return SLAGroup(
            id=model.id,
            name=model.name,
            description=model.description,
            sla_config=SLAConfig(
                business_hours_sla=model.business_hours_sla,
                after_hours_sla=model.after_hours_sla,
                weekend_business_sla=model.weekend_business_sla,
                weekend_after_hours_sla=model.weekend_after_hours_sla,
                next_day_start=model.next_day_start
            )
        )
