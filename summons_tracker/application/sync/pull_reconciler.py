from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from summons_tracker.application.property_bag import map_case_page, map_summons_page
from summons_tracker.application.sync.record_locks import RecordLockRegistry
from summons_tracker.bootstrap.logging import log_operational_error
from summons_tracker.core.errors import ExternalServiceError, PersistenceError
from summons_tracker.core.metrics import metrics_registry
from summons_tracker.core.observability import OperationContext
from summons_tracker.domain.identifiers import PENDING_LINK
from summons_tracker.domain.models import RecordType, remote_owned_fields
from summons_tracker.domain.ports import (
    CaseRepository,
    RemoteRecordsPort,
    SummonsRepository,
    SyncStateRepository,
    TransactionFactory,
)
from summons_tracker.domain.remote_errors import RemoteConfigError
from summons_tracker.domain.sync_models import SyncResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 200

PageMapper = Callable[[Mapping[str, Any], str], Any]

_MAPPERS: dict[RecordType, PageMapper] = {
    RecordType.CASE: map_case_page,
    RecordType.SUMMONS: map_summons_page,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class PullOperation:
    kind: str
    record_id: str
    record: Any = None
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class PullPlan:
    operations: list[PullOperation] = field(default_factory=list)
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)


# Value the mapper yields for an empty remote relation.
_EMPTY_RELATION: dict[str, Any] = {"case_id": PENDING_LINK, "previous_summon_id": None}


def changed_remote_fields(record_type: RecordType, existing: Any, incoming: Any) -> dict[str, Any]:
    """Remote-owned fields that differ.

    An empty remote relation never replaces a local link: the relation is
    left out of the payload until the related record exists remotely.
    """
    changes: dict[str, Any] = {}
    for name in remote_owned_fields(record_type):
        current = getattr(existing, name)
        value = getattr(incoming, name)
        if current == value:
            continue
        if name in _EMPTY_RELATION and value == _EMPTY_RELATION[name]:
            continue
        changes[name] = value
    return changes


def chunked(items: list[PullOperation], size: int) -> list[list[PullOperation]]:
    return [items[index : index + size] for index in range(0, len(items), size)]


class PullReconciler:
    def __init__(
        self,
        remote: RemoteRecordsPort,
        case_repo: CaseRepository,
        summons_repo: SummonsRepository,
        transaction: TransactionFactory,
        *,
        locks: RecordLockRegistry | None = None,
        sync_state: SyncStateRepository | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], str] = _now_iso,
    ) -> None:
        self._remote = remote
        self._repos: dict[RecordType, Any] = {RecordType.CASE: case_repo, RecordType.SUMMONS: summons_repo}
        self._transaction = transaction
        self._locks = locks or RecordLockRegistry()
        self._sync_state = sync_state
        self._batch_size = max(1, batch_size)
        self._clock = clock

    def pull(self, record_type: RecordType | str) -> SyncResult:
        record_type = RecordType(record_type)
        with OperationContext("sync.pull", record_type=record_type.value) as operation:
            try:
                pages = self._remote.query_database(record_type)
            except (ExternalServiceError, RemoteConfigError) as exc:
                log_operational_error(
                    logger,
                    "Remote fetch failed; local store left untouched",
                    exc=exc,
                    extra={"record_type": record_type.value},
                )
                metrics_registry.increment(f"sync.pull.{record_type.value}.failed")
                return SyncResult.failed(record_type, str(exc))

            synced_at = self._clock()
            plan = self.plan(record_type, pages, synced_at)
            result = self._apply(record_type, plan)

        metrics_registry.record_timing(f"sync.pull.{record_type.value}", operation.elapsed_ms)
        metrics_registry.increment(f"sync.pull.{record_type.value}.added", result.added)
        metrics_registry.increment(f"sync.pull.{record_type.value}.updated", result.updated)
        metrics_registry.increment(f"sync.pull.{record_type.value}.deleted", result.deleted)
        metrics_registry.increment(f"sync.pull.{record_type.value}.errors", len(result.errors))
        if self._sync_state is not None:
            self._sync_state.record_pull(record_type, synced_at, json.dumps(result.to_dict()))
        logger.info(
            "Pull finished for %s: +%s ~%s =%s -%s errors=%s",
            record_type.value,
            result.added,
            result.updated,
            result.unchanged,
            result.deleted,
            len(result.errors),
        )
        return result

    def plan(self, record_type: RecordType, pages: list[dict[str, Any]], synced_at: str) -> PullPlan:
        """Map a remote snapshot into upserts followed by tombstone deletes."""
        repo = self._repos[record_type]
        mapper = _MAPPERS[record_type]
        existing = {record.id: record for record in repo.list_all()}
        seen: set[str] = set()
        plan = PullPlan()

        for page in pages:
            page_id = page.get("id") if isinstance(page, Mapping) else None
            if page_id:
                seen.add(str(page_id))
            try:
                incoming = mapper(page, synced_at)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Could not map %s page %s: %s", record_type.value, page_id, exc)
                plan.errors.append(f"Failed to process {record_type.value} page {page_id}: {exc}")
                continue

            current = existing.get(incoming.id)
            if current is None:
                plan.operations.append(PullOperation("insert", incoming.id, record=incoming))
                continue
            changes = changed_remote_fields(record_type, current, incoming)
            if not changes and current.synced_at:
                plan.unchanged += 1
                continue
            changes["synced_at"] = synced_at
            plan.operations.append(PullOperation("update", incoming.id, values=changes))

        for record_id, record in existing.items():
            if record.synced_at and record_id not in seen:
                plan.operations.append(PullOperation("delete", record_id))
        return plan

    def _apply(self, record_type: RecordType, plan: PullPlan) -> SyncResult:
        repo = self._repos[record_type]
        counts = {"insert": 0, "update": 0, "delete": 0}
        errors = list(plan.errors)

        for batch in chunked(plan.operations, self._batch_size):
            batch_counts = {"insert": 0, "update": 0, "delete": 0}
            batch_errors: list[str] = []
            try:
                with self._locks.hold(*(operation.record_id for operation in batch)):
                    with self._transaction():
                        for operation in batch:
                            self._apply_one(repo, record_type, operation, batch_counts, batch_errors)
                for kind, value in batch_counts.items():
                    counts[kind] += value
                errors.extend(batch_errors)
            except PersistenceError as exc:
                # Lock timeout or failed batch commit; the next pull heals it.
                log_operational_error(
                    logger,
                    "Pull batch not committed",
                    exc=exc,
                    extra={"record_type": record_type.value, "batch_size": len(batch)},
                )
                errors.extend(f"Batch skipped for {operation.record_id}: {exc}" for operation in batch)

        return SyncResult(
            record_type=record_type.value,
            added=counts["insert"],
            updated=counts["update"],
            unchanged=plan.unchanged,
            deleted=counts["delete"],
            errors=errors,
        )

    def _apply_one(
        self,
        repo: Any,
        record_type: RecordType,
        operation: PullOperation,
        counts: dict[str, int],
        errors: list[str],
    ) -> None:
        try:
            with self._transaction():
                if operation.kind == "insert":
                    repo.insert(operation.record)
                elif operation.kind == "update":
                    repo.update_fields(operation.record_id, operation.values)
                else:
                    repo.delete(operation.record_id)
        except PersistenceError as exc:
            logger.warning("Could not %s %s %s: %s", operation.kind, record_type.value, operation.record_id, exc)
            errors.append(f"Failed to {operation.kind} {record_type.value} {operation.record_id}: {exc}")
            return
        counts[operation.kind] += 1
