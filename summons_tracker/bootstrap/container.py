from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Callable

from summons_tracker.application.records_service import RecordsService
from summons_tracker.application.sync.orchestrator import SyncOrchestrator
from summons_tracker.application.sync.pull_reconciler import PullReconciler
from summons_tracker.application.sync.push_writer import PushWriter
from summons_tracker.application.sync.record_locks import RecordLockRegistry
from summons_tracker.bootstrap.settings import SyncSettings
from summons_tracker.domain.models import RecordType
from summons_tracker.domain.ports import RemoteRecordsPort
from summons_tracker.domain.remote_errors import RemoteConfigError
from summons_tracker.infrastructure.db import get_connection
from summons_tracker.infrastructure.migrations import run_migrations
from summons_tracker.infrastructure.notion_client import NotionClient
from summons_tracker.infrastructure.repos_sqlite import (
    ActivityLogRepositorySQLite,
    CaseRepositorySQLite,
    SummonsRepositorySQLite,
    SyncStateRepositorySQLite,
)
from summons_tracker.infrastructure.sqlite_uow import transaction_factory

ConnectionFactory = Callable[[], sqlite3.Connection]


class UnconfiguredRemote:
    """Stands in for the Notion client when credentials are missing."""

    def __init__(self, missing: list[str]) -> None:
        self._message = f"Missing configuration: {', '.join(missing)}"

    def __getattr__(self, name: str) -> Any:
        def _fail(*args: Any, **kwargs: Any) -> Any:
            raise RemoteConfigError(self._message)

        return _fail


@dataclass
class AppContainer:
    settings: SyncSettings
    connection: sqlite3.Connection
    case_repo: CaseRepositorySQLite
    summons_repo: SummonsRepositorySQLite
    activity_repo: ActivityLogRepositorySQLite
    sync_state_repo: SyncStateRepositorySQLite
    remote: Any
    orchestrator: SyncOrchestrator
    records_service: RecordsService

    def close(self) -> None:
        if isinstance(self.remote, NotionClient):
            self.remote.close()
        self.connection.close()


def build_remote(settings: SyncSettings) -> RemoteRecordsPort:
    return NotionClient(
        settings.notion_api_key,
        {
            RecordType.CASE: settings.cases_database_id,
            RecordType.SUMMONS: settings.summons_database_id,
        },
        local_id_property=settings.local_id_property,
        timeout_seconds=settings.timeout_seconds,
    )


def build_container(
    settings: SyncSettings | None = None,
    *,
    connection_factory: ConnectionFactory | None = None,
    remote: RemoteRecordsPort | None = None,
    auto_push: bool = False,
) -> AppContainer:
    settings = settings or SyncSettings.from_env()
    connection = connection_factory() if connection_factory else get_connection(settings.resolved_db_path())
    run_migrations(connection)

    case_repo = CaseRepositorySQLite(connection)
    summons_repo = SummonsRepositorySQLite(connection)
    activity_repo = ActivityLogRepositorySQLite(connection)
    sync_state_repo = SyncStateRepositorySQLite(connection)
    transaction = transaction_factory(connection)

    missing = [] if remote is not None else settings.missing_keys()
    if remote is None:
        remote = build_remote(settings) if not missing else UnconfiguredRemote(missing)

    locks = RecordLockRegistry()
    reconciler = PullReconciler(
        remote,
        case_repo,
        summons_repo,
        transaction,
        locks=locks,
        sync_state=sync_state_repo,
        batch_size=settings.batch_size,
    )
    writer = PushWriter(
        remote,
        case_repo,
        summons_repo,
        locks=locks,
        local_id_property=settings.local_id_property,
    )
    orchestrator = SyncOrchestrator(reconciler, writer, missing_configuration=missing)
    records_service = RecordsService(
        case_repo,
        summons_repo,
        activity_repo,
        transaction,
        orchestrator=orchestrator,
        auto_push=auto_push,
    )
    return AppContainer(
        settings=settings,
        connection=connection,
        case_repo=case_repo,
        summons_repo=summons_repo,
        activity_repo=activity_repo,
        sync_state_repo=sync_state_repo,
        remote=remote,
        orchestrator=orchestrator,
        records_service=records_service,
    )
