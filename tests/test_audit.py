from datetime import timedelta
from uuid import uuid4

import pytest
from pydantic import BaseModel

from src.audit.application import AuditLogger, IAuditLogRepository
from src.audit.domain import RequestMeta, normalize_ip, normalize_user_agent
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.core import ValidationException
from src.infrastructure.database import unit_of_work


class RecordingRepository(IAuditLogRepository):

    def __init__(self):
        self.entries = []

    async def add(self, entry):
        self.entries.append(entry)
        return entry

    async def list_for_entity(self, entity_type, entity_id, limit=100):
        return [e for e in self.entries if (e.entity_type, e.entity_id) == (entity_type, entity_id)][:limit]


class Snapshot(BaseModel):
    status: str
    assignee: str | None = None


@pytest.fixture
def repo():
    return RecordingRepository()


@pytest.fixture
def audit_logger(repo, clock):
    return AuditLogger(repo, clock)


def test_normalize_ip():
    assert normalize_ip("203.0.113.9") == "203.0.113.9"
    assert normalize_ip(None) == "unknown"
    assert normalize_ip("   ") == "unknown"


def test_long_forwarded_chain_keeps_first_address():
    chain = "2001:db8:85a3::8a2e:370:7334, 198.51.100.23, 203.0.113.195"
    assert len(chain) > 45
    assert normalize_ip(chain) == "2001:db8:85a3::8a2e:370:7334"


def test_short_forwarded_chain_is_kept():
    assert normalize_ip("10.0.0.1, 10.0.0.2") == "10.0.0.1, 10.0.0.2"


def test_single_long_value_is_truncated():
    assert normalize_ip("x" * 60) == "x" * 45


def test_normalize_user_agent():
    assert normalize_user_agent("a" * 300) == "a" * 255
    assert normalize_user_agent("") == "unknown"


def test_request_meta_from_headers():
    meta = RequestMeta.from_headers({
        "X-Real-IP": "10.1.1.1",
        "x-forwarded-for": "198.51.100.23",
        "User-Agent": "curl/8.4.0",
    })
    assert meta.source_ip == "198.51.100.23"
    assert meta.user_agent == "curl/8.4.0"


def test_request_meta_falls_back_to_real_ip():
    assert RequestMeta.from_headers({"X-Real-IP": "10.1.1.1"}).source_ip == "10.1.1.1"
    assert RequestMeta.from_headers({}) == RequestMeta()


async def test_log_records_snapshots(audit_logger, repo, clock):
    entry = await audit_logger.log(
        "ticket", uuid4(), "status_change",
        Snapshot(status="open"), {"status": "in_progress"},
        "agent-7", RequestMeta.create("198.51.100.23", "pytest")
    )

    assert repo.entries == [entry]
    assert entry.previous_state == {"status": "open", "assignee": None}
    assert entry.new_state == {"status": "in_progress"}
    assert entry.occurred_at == clock()
    assert entry.source_ip == "198.51.100.23"


async def test_log_without_meta_uses_unknown(audit_logger):
    entry = await audit_logger.log("ticket", "t-1", "create")
    assert entry.source_ip == "unknown"
    assert entry.user_agent == "unknown"
    assert entry.previous_state is None


@pytest.mark.parametrize("entity_type, entity_id, action, missing", [
    (None, "t-1", "create", ["entity_type"]),
    ("ticket", None, "create", ["entity_id"]),
    ("ticket", "t-1", "  ", ["action"]),
    ("", None, None, ["entity_type", "entity_id", "action"]),
])
async def test_missing_required_fields(audit_logger, repo, entity_type, entity_id, action, missing):
    with pytest.raises(ValidationException) as exc_info:
        await audit_logger.log(entity_type, entity_id, action)

    assert exc_info.value.details["missing"] == missing
    assert repo.entries == []


async def test_unstructured_snapshot_rejected(audit_logger, repo):
    with pytest.raises(ValidationException):
        await audit_logger.log("ticket", "t-1", "create", None, "not a snapshot")
    assert repo.entries == []


async def test_repository_lists_most_recent_first(session_maker, clock):
    async with unit_of_work(session_maker()) as session:
        audit_logger = AuditLogger(SQLAlchemyAuditLogRepository(session), clock)
        for action in ("create", "status_change", "delete"):
            await audit_logger.log("ticket", "t-1", action, actor="agent-7")
            clock.advance(minutes=1)
        await audit_logger.log("ticket", "t-2", "create")

    async with unit_of_work(session_maker()) as session:
        entries = await SQLAlchemyAuditLogRepository(session).list_for_entity("ticket", "t-1")
        limited = await SQLAlchemyAuditLogRepository(session).list_for_entity("ticket", "t-1", limit=1)

    assert [e.action for e in entries] == ["delete", "status_change", "create"]
    assert entries[0].occurred_at - entries[-1].occurred_at == timedelta(minutes=2)
    assert [e.action for e in limited] == ["delete"]
    assert all(e.id is not None for e in entries)
