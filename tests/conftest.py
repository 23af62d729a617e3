from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from summons_tracker.application.records_service import RecordsService
from summons_tracker.application.sync.orchestrator import SyncOrchestrator
from summons_tracker.application.sync.pull_reconciler import PullReconciler
from summons_tracker.application.sync.push_writer import PushWriter
from summons_tracker.application.sync.record_locks import RecordLockRegistry
from summons_tracker.core.metrics import metrics_registry
from summons_tracker.infrastructure.migrations import run_migrations
from summons_tracker.infrastructure.repos_sqlite import (
    ActivityLogRepositorySQLite,
    CaseRepositorySQLite,
    SummonsRepositorySQLite,
    SyncStateRepositorySQLite,
)
from summons_tracker.infrastructure.sqlite_uow import transaction_factory
from tests.fakes import FakeNotionRemote, fixed_clock


@pytest.fixture(autouse=True)
def _reset_metrics() -> None:
    metrics_registry.reset()


@pytest.fixture
def connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def case_repo(connection: sqlite3.Connection) -> CaseRepositorySQLite:
    return CaseRepositorySQLite(connection)


@pytest.fixture
def summons_repo(connection: sqlite3.Connection) -> SummonsRepositorySQLite:
    return SummonsRepositorySQLite(connection)


@pytest.fixture
def activity_repo(connection: sqlite3.Connection) -> ActivityLogRepositorySQLite:
    return ActivityLogRepositorySQLite(connection)


@pytest.fixture
def sync_state_repo(connection: sqlite3.Connection) -> SyncStateRepositorySQLite:
    return SyncStateRepositorySQLite(connection)


@pytest.fixture
def transaction(connection: sqlite3.Connection):
    return transaction_factory(connection)


@pytest.fixture
def fake_remote() -> FakeNotionRemote:
    return FakeNotionRemote()


@pytest.fixture
def locks() -> RecordLockRegistry:
    return RecordLockRegistry(timeout_seconds=0.2)


@pytest.fixture
def reconciler(fake_remote, case_repo, summons_repo, transaction, locks, sync_state_repo) -> PullReconciler:
    return PullReconciler(
        fake_remote,
        case_repo,
        summons_repo,
        transaction,
        locks=locks,
        sync_state=sync_state_repo,
        clock=fixed_clock("2024-06-01T10:00:00Z"),
    )


@pytest.fixture
def writer(fake_remote, case_repo, summons_repo, locks) -> PushWriter:
    return PushWriter(
        fake_remote,
        case_repo,
        summons_repo,
        locks=locks,
        clock=fixed_clock("2024-06-01T11:00:00Z"),
    )


@pytest.fixture
def orchestrator(reconciler: PullReconciler, writer: PushWriter) -> SyncOrchestrator:
    return SyncOrchestrator(reconciler, writer)


@pytest.fixture
def service(case_repo, summons_repo, activity_repo, transaction) -> RecordsService:
    return RecordsService(
        case_repo,
        summons_repo,
        activity_repo,
        transaction,
        clock=fixed_clock("2024-06-01T09:00:00Z"),
    )
