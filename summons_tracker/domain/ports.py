from __future__ import annotations

from typing import Any, Callable, ContextManager, Iterable, Protocol

from summons_tracker.domain.models import ActivityLogEntry, CaseRecord, RecordType, SummonsRecord
from summons_tracker.domain.sync_models import RemoteUpdateResult

# Opens one atomic unit of work on the local store (nested calls become savepoints).
TransactionFactory = Callable[[], ContextManager[None]]


class RemoteRecordsPort(Protocol):
    def query_database(self, record_type: RecordType) -> list[dict[str, Any]]:
        ...

    def try_update_page(self, page_id: str, properties: dict[str, Any]) -> RemoteUpdateResult:
        ...

    def create_page(self, record_type: RecordType, properties: dict[str, Any]) -> dict[str, Any]:
        ...

    def archive_page(self, page_id: str) -> dict[str, Any]:
        ...

    def find_page_by_local_id(self, record_type: RecordType, local_id: str) -> dict[str, Any] | None:
        ...


class CaseRepository(Protocol):
    def get(self, case_id: str) -> CaseRecord | None:
        ...

    def list_all(self) -> Iterable[CaseRecord]:
        ...

    def insert(self, record: CaseRecord) -> None:
        ...

    def update_fields(self, case_id: str, values: dict[str, Any]) -> None:
        ...

    def delete(self, case_id: str) -> None:
        ...

    def mark_synced(self, case_id: str, synced_at: str) -> None:
        ...

    def migrate_identifier(self, old_id: str, new_id: str, synced_at: str) -> None:
        ...


class SummonsRepository(Protocol):
    def get(self, summons_id: str) -> SummonsRecord | None:
        ...

    def list_all(self) -> Iterable[SummonsRecord]:
        ...

    def list_by_case(self, case_id: str) -> Iterable[SummonsRecord]:
        ...

    def insert(self, record: SummonsRecord) -> None:
        ...

    def update_fields(self, summons_id: str, values: dict[str, Any]) -> None:
        ...

    def delete(self, summons_id: str) -> None:
        ...

    def mark_synced(self, summons_id: str, synced_at: str) -> None:
        ...

    def migrate_identifier(self, old_id: str, new_id: str, synced_at: str) -> None:
        ...


class ActivityLogRepository(Protocol):
    def add(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        ...

    def list_for_summons(self, summons_id: str) -> Iterable[ActivityLogEntry]:
        ...


class SyncStateRepository(Protocol):
    def record_pull(self, record_type: RecordType, pulled_at: str, result_summary: str) -> None:
        ...

    def last_pull(self, record_type: RecordType) -> dict[str, Any] | None:
        ...
