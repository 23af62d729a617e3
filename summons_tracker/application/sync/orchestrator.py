from __future__ import annotations

import logging
from typing import Sequence

from summons_tracker.application.sync.pull_reconciler import PullReconciler
from summons_tracker.application.sync.push_writer import PushWriter
from summons_tracker.core.metrics import metrics_registry
from summons_tracker.core.observability import OperationContext
from summons_tracker.domain.models import RecordType
from summons_tracker.domain.sync_models import PushResult, SyncAllResult, SyncResult

logger = logging.getLogger(__name__)

# Summonses reference cases, so cases are reconciled first.
PULL_ORDER = (RecordType.CASE, RecordType.SUMMONS)


class SyncOrchestrator:
    """Public entry points of the sync engine. None of them raise."""

    def __init__(
        self,
        reconciler: PullReconciler,
        writer: PushWriter,
        *,
        missing_configuration: Sequence[str] = (),
    ) -> None:
        self._reconciler = reconciler
        self._writer = writer
        self._missing_configuration = tuple(missing_configuration)

    @property
    def configured(self) -> bool:
        return not self._missing_configuration

    def _configuration_error(self) -> str:
        return f"Missing configuration: {', '.join(self._missing_configuration)}"

    def sync_all(self) -> SyncAllResult:
        with OperationContext("sync.all") as operation:
            results = {record_type: self._safe_pull(record_type) for record_type in PULL_ORDER}
        metrics_registry.record_timing("sync.all", operation.elapsed_ms)
        outcome = SyncAllResult(cases=results[RecordType.CASE], summons=results[RecordType.SUMMONS])
        if not outcome.success:
            metrics_registry.increment("sync.all.failed")
        return outcome

    def pull(self, record_type: RecordType | str) -> SyncResult:
        return self._safe_pull(RecordType(record_type))

    def push_one(self, record_type: RecordType | str, record_id: str) -> PushResult:
        record_type = RecordType(record_type)
        if not self.configured:
            return PushResult(False, record_type.value, record_id, error=self._configuration_error())
        try:
            return self._writer.push(record_type, record_id)
        except Exception as exc:
            logger.exception("Unexpected failure pushing %s %s", record_type.value, record_id)
            return PushResult(False, record_type.value, record_id, error=f"Unexpected error: {exc}")

    def archive_one(self, record_type: RecordType | str, record_id: str) -> PushResult:
        record_type = RecordType(record_type)
        if not self.configured:
            return PushResult(False, record_type.value, record_id, error=self._configuration_error())
        try:
            return self._writer.archive(record_type, record_id)
        except Exception as exc:
            logger.exception("Unexpected failure archiving %s %s", record_type.value, record_id)
            return PushResult(False, record_type.value, record_id, error=f"Unexpected error: {exc}")

    def _safe_pull(self, record_type: RecordType) -> SyncResult:
        if not self.configured:
            logger.warning("Sync skipped for %s: %s", record_type.value, self._configuration_error())
            return SyncResult.failed(record_type, self._configuration_error())
        try:
            return self._reconciler.pull(record_type)
        except Exception as exc:
            logger.exception("Unexpected failure pulling %s", record_type.value)
            return SyncResult.failed(record_type, f"Unexpected error: {exc}")
