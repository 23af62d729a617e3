"""Pushes one local record to the remote database.

Update in place when the id is canonical; otherwise (or when the remote says
the page does not exist) create it, then move the local row and every foreign
key pointing at it to the identifier the remote side assigned.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from summons_tracker.application.remote_payloads import (
    SUMMONS_RELATION_PROPERTIES,
    build_case_properties,
    build_summons_properties,
    has_any_property,
    with_local_id_tag,
    without_properties,
)
from summons_tracker.application.sync.record_locks import RecordLockRegistry
from summons_tracker.bootstrap.logging import log_operational_error
from summons_tracker.core.errors import ExternalServiceError, IdentifierMigrationError, PersistenceError
from summons_tracker.core.metrics import metrics_registry
from summons_tracker.core.observability import OperationContext
from summons_tracker.domain.identifiers import canonical_form, is_canonical_id
from summons_tracker.domain.models import RecordType
from summons_tracker.domain.ports import CaseRepository, RemoteRecordsPort, SummonsRepository
from summons_tracker.domain.remote_errors import RemoteApiError, RemoteConfigError
from summons_tracker.domain.sync_models import PushResult

logger = logging.getLogger(__name__)

_BUILDERS: dict[RecordType, Callable[[Any], dict[str, Any]]] = {
    RecordType.CASE: build_case_properties,
    RecordType.SUMMONS: build_summons_properties,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PushWriter:
    def __init__(
        self,
        remote: RemoteRecordsPort,
        case_repo: CaseRepository,
        summons_repo: SummonsRepository,
        *,
        locks: RecordLockRegistry | None = None,
        local_id_property: str = "Local ID",
        clock: Callable[[], str] = _now_iso,
    ) -> None:
        self._remote = remote
        self._repos: dict[RecordType, Any] = {RecordType.CASE: case_repo, RecordType.SUMMONS: summons_repo}
        self._locks = locks or RecordLockRegistry()
        self._local_id_property = local_id_property
        self._clock = clock

    def push(self, record_type: RecordType | str, local_id: str) -> PushResult:
        record_type = RecordType(record_type)
        with OperationContext("sync.push", record_type=record_type.value, record_id=local_id) as operation:
            try:
                with self._locks.hold(local_id):
                    result = self._push_locked(record_type, local_id)
            except PersistenceError as exc:
                log_operational_error(
                    logger,
                    "Push aborted by local store",
                    exc=exc,
                    extra={"record_type": record_type.value, "record_id": local_id},
                )
                result = self._failure(record_type, local_id, str(exc))

        metrics_registry.record_timing(f"sync.push.{record_type.value}", operation.elapsed_ms)
        metrics_registry.increment(f"sync.push.{record_type.value}.{'ok' if result.success else 'failed'}")
        return result

    def archive(self, record_type: RecordType | str, record_id: str) -> PushResult:
        """Archive the remote page of a record deleted locally."""
        record_type = RecordType(record_type)
        if not is_canonical_id(record_id):
            # Never reached the remote side: nothing to archive.
            return PushResult(success=True, record_type=record_type.value, record_id=record_id)
        try:
            self._remote.archive_page(canonical_form(record_id))
        except (ExternalServiceError, RemoteConfigError) as exc:
            if isinstance(exc, RemoteApiError) and exc.is_not_found:
                logger.info("Remote page %s already gone; nothing to archive", record_id)
                return PushResult(success=True, record_type=record_type.value, record_id=record_id)
            log_operational_error(
                logger,
                "Remote archive failed",
                exc=exc,
                extra={"record_type": record_type.value, "record_id": record_id},
            )
            return self._failure(record_type, record_id, str(exc))
        logger.info("Archived remote %s page %s", record_type.value, record_id)
        return PushResult(success=True, record_type=record_type.value, record_id=record_id)

    def _push_locked(self, record_type: RecordType, local_id: str) -> PushResult:
        repo = self._repos[record_type]
        record = repo.get(local_id)
        if record is None:
            return self._failure(record_type, local_id, f"{record_type.value} {local_id} not found locally")

        properties = _BUILDERS[record_type](record)
        try:
            if is_canonical_id(local_id):
                outcome = self._remote.try_update_page(canonical_form(local_id), properties)
                if not outcome.not_found:
                    repo.mark_synced(local_id, self._clock())
                    logger.info("Updated remote %s %s in place", record_type.value, local_id)
                    return PushResult(success=True, record_type=record_type.value, record_id=local_id)
                logger.info(
                    "Remote %s %s not found (%s); creating it",
                    record_type.value,
                    local_id,
                    outcome.reason or "not_found",
                )
            page = self._find_or_create(record_type, local_id, properties)
        except (ExternalServiceError, RemoteConfigError) as exc:
            log_operational_error(
                logger,
                "Remote push failed; local record untouched",
                exc=exc,
                extra={"record_type": record_type.value, "record_id": local_id},
            )
            return self._failure(record_type, local_id, str(exc))

        new_id = str(page["id"])
        synced_at = self._clock()
        if new_id == local_id:
            repo.mark_synced(local_id, synced_at)
            return PushResult(success=True, record_type=record_type.value, record_id=local_id, created=True)

        try:
            with self._locks.hold(new_id):
                repo.migrate_identifier(local_id, new_id, synced_at)
        except IdentifierMigrationError as exc:
            log_operational_error(
                logger,
                "Identifier migration rolled back",
                exc=exc,
                extra={"record_type": record_type.value, "old_id": local_id, "new_id": new_id},
            )
            return self._failure(record_type, local_id, str(exc))

        logger.info("Migrated local %s %s -> %s", record_type.value, local_id, new_id)
        return PushResult(
            success=True,
            record_type=record_type.value,
            record_id=new_id,
            new_id=new_id,
            created=True,
        )

    def _find_or_create(self, record_type: RecordType, local_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        tag_supported = bool(self._local_id_property)
        if tag_supported:
            try:
                existing = self._remote.find_page_by_local_id(record_type, local_id)
            except RemoteApiError as exc:
                if exc.status_code != 400:
                    raise
                self._warn_tag_disabled(record_type, exc)
                existing = None
                tag_supported = False
            if existing is not None:
                logger.info("Reusing remote page %s already tagged with %s", existing["id"], local_id)
                tagged = with_local_id_tag(properties, self._local_id_property, local_id)
                outcome = self._remote.try_update_page(str(existing["id"]), tagged)
                if not outcome.not_found:
                    return outcome.page or existing
        return self._create_with_fallbacks(record_type, local_id, properties, tag_supported=tag_supported)

    def _create_attempts(
        self,
        record_type: RecordType,
        local_id: str,
        properties: dict[str, Any],
        *,
        tag_supported: bool,
    ) -> list[dict[str, Any]]:
        """Payloads to try in order: tagged before untagged, relations before none."""
        variants = [properties]
        if record_type is RecordType.SUMMONS and has_any_property(properties, SUMMONS_RELATION_PROPERTIES):
            # Related case may not exist remotely yet.
            variants.append(without_properties(properties, SUMMONS_RELATION_PROPERTIES))
        attempts: list[dict[str, Any]] = []
        if tag_supported:
            attempts.extend(with_local_id_tag(variant, self._local_id_property, local_id) for variant in variants)
        attempts.extend(variants)
        return attempts

    def _create_with_fallbacks(
        self,
        record_type: RecordType,
        local_id: str,
        properties: dict[str, Any],
        *,
        tag_supported: bool,
    ) -> dict[str, Any]:
        attempts = self._create_attempts(record_type, local_id, properties, tag_supported=tag_supported)
        for index, attempt in enumerate(attempts):
            try:
                return self._remote.create_page(record_type, attempt)
            except RemoteApiError as exc:
                if exc.status_code != 400 or index == len(attempts) - 1:
                    raise
                next_attempt = attempts[index + 1]
                if self._local_id_property in attempt and self._local_id_property not in next_attempt:
                    self._warn_tag_disabled(record_type, exc)
                else:
                    logger.warning("Create rejected for %s, retrying without relations: %s", record_type.value, exc)
        raise RemoteApiError("remote create failed")

    def _warn_tag_disabled(self, record_type: RecordType, exc: Exception) -> None:
        logger.warning(
            "Remote %s database rejected the %r property; creation idempotence disabled: %s",
            record_type.value,
            self._local_id_property,
            exc,
        )

    @staticmethod
    def _failure(record_type: RecordType, record_id: str, message: str) -> PushResult:
        return PushResult(success=False, record_type=record_type.value, record_id=record_id, error=message)
