"""
Audit Application Services
==========================

The audit logger validates and normalizes audit records before handing
them to the repository. It never opens its own transaction: entries are
written in the caller's unit of work, next to the mutation they describe.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python

from src.audit.domain import AuditLogEntry, RequestMeta
from src.core import Clock, ValidationException, utc_now
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class IAuditLogRepository(ABC):
    """Append-only audit storage: no update or delete exists."""

    @abstractmethod
    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Persist a new entry and return it with its id."""

    @abstractmethod
    async def list_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 100
    ) -> List[AuditLogEntry]:
        """Entries of one entity, most recent first."""


def to_snapshot(value: Any, field: str) -> Optional[Any]:
    """
    Serialize a snapshot into a JSON-compatible payload.

    Raises:
        ValidationException: If the value is neither a pydantic model nor a mapping
    """
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        try:
            return to_jsonable_python(dict(value))
        except PydanticSerializationError as e:
            raise ValidationException(
                f"{field} is not JSON serializable",
                field=field,
                details={"field": field, "error": str(e)}
            ) from e
    raise ValidationException(
        f"{field} must be a structured object",
        field=field,
        details={"field": field, "type": type(value).__name__}
    )


class AuditLogger:
    """
    Generic before/after snapshot recorder for entity mutations.
    """

    REQUIRED_FIELDS = ("entity_type", "entity_id", "action")

    def __init__(self, repository: IAuditLogRepository, clock: Clock = utc_now):
        self._repo = repository
        self._clock = clock

    async def log(
        self,
        entity_type: Optional[str],
        entity_id: Optional[Any],
        action: Optional[Any],
        previous: Optional[Any] = None,
        new: Optional[Any] = None,
        actor: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None
    ) -> AuditLogEntry:
        """
        Append an audit entry.

        Args:
            entity_type: Kind of entity, e.g. "ticket"
            entity_id: Identifier of the entity
            action: Free-form action tag, e.g. "status_change"
            previous: Snapshot before the mutation (pydantic model or mapping)
            new: Snapshot after the mutation (pydantic model or mapping)
            actor: Id of the acting user
            request_meta: Origin of the triggering request

        Raises:
            ValidationException: If a required field is missing; nothing is written
        """
        values = {
            "entity_type": entity_type,
            "entity_id": None if entity_id is None else str(entity_id),
            "action": getattr(action, "value", action),
        }
        missing = [
            name for name in self.REQUIRED_FIELDS
            if values[name] is None or not str(values[name]).strip()
        ]
        if missing:
            raise ValidationException(
                f"Missing required audit fields: {', '.join(missing)}",
                field=missing[0],
                details={"missing": missing}
            )

        meta = request_meta or RequestMeta()
        entry = AuditLogEntry(
            entity_type=values["entity_type"],
            entity_id=values["entity_id"],
            action=str(values["action"]),
            occurred_at=self._clock(),
            previous_state=to_snapshot(previous, "previous_state"),
            new_state=to_snapshot(new, "new_state"),
            actor_id=actor or None,
            source_ip=meta.source_ip,
            user_agent=meta.user_agent
        )

        saved = await self._repo.add(entry)
        logger.debug(
            "Audit entry recorded",
            extra={
                "entity_type": saved.entity_type,
                "entity_id": saved.entity_id,
                "action": saved.action
            }
        )
        return saved

    async def list_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 100
    ) -> List[AuditLogEntry]:
        if not entity_type or not entity_id:
            raise ValidationException(
                "entity_type and entity_id are required",
                field="entity_type" if not entity_type else "entity_id"
            )
        return await self._repo.list_for_entity(entity_type, entity_id, limit)
