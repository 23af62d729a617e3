from __future__ import annotations

import sqlite3

from summons_tracker.bootstrap.container import UnconfiguredRemote, build_container
from summons_tracker.bootstrap.settings import SyncSettings
from summons_tracker.domain.models import RecordType
from summons_tracker.infrastructure.notion_client import NotionClient
from tests.fakes import FakeNotionRemote, case_page


def _memory_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    return conn


def test_unconfigured_container_short_circuits_sync() -> None:
    container = build_container(SyncSettings("", "", ""), connection_factory=_memory_connection)
    try:
        assert isinstance(container.remote, UnconfiguredRemote)
        result = container.orchestrator.sync_all()
        assert not result.success
        assert "Missing configuration: NOTION_API_KEY" in result.cases.errors[0]
    finally:
        container.close()


def test_configured_container_builds_notion_client() -> None:
    container = build_container(SyncSettings("key", "cases", "summons"), connection_factory=_memory_connection)
    try:
        assert isinstance(container.remote, NotionClient)
        assert container.orchestrator.configured
    finally:
        container.close()


def test_injected_remote_is_used_end_to_end() -> None:
    remote = FakeNotionRemote()
    remote.seed(RecordType.CASE, case_page("aaaaaaaa-0000-4000-8000-000000000001", "Alpha"))
    container = build_container(SyncSettings("", "", ""), connection_factory=_memory_connection, remote=remote)
    try:
        result = container.orchestrator.sync_all()
        assert result.success
        assert [record.name for record in container.records_service.list_cases()] == ["Alpha"]
    finally:
        container.close()
