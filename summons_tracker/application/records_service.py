from __future__ import annotations

import logging
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Callable

from summons_tracker.application.sync.orchestrator import SyncOrchestrator
from summons_tracker.core.errors import RecordNotFoundError, ValidationError
from summons_tracker.domain.identifiers import PENDING_LINK, canonical_form, new_local_id
from summons_tracker.domain.models import (
    BOOKKEEPING_FIELDS,
    CASE_LIST_FIELDS,
    SUMMONS_LIST_FIELDS,
    ActivityLogEntry,
    CaseRecord,
    RecordType,
    SummonsRecord,
)
from summons_tracker.domain.ports import ActivityLogRepository, CaseRepository, SummonsRepository, TransactionFactory
from summons_tracker.domain.summons_status import (
    STATUS_INPUT_FIELDS,
    SummonsStatus,
    derive_flags_from_status,
    editable_fields,
    infer_status,
    validate_transition,
)
from summons_tracker.domain.sync_models import PushResult

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _field_names(record_cls: type) -> set[str]:
    return {item.name for item in fields(record_cls)}


_LINK_FIELDS = ("case_id", "previous_summon_id")


def _normalize_changes(
    record_cls: type,
    changes: dict[str, Any],
    list_fields: tuple[str, ...],
) -> dict[str, Any]:
    known = _field_names(record_cls)
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
    protected = sorted(set(changes) & set(BOOKKEEPING_FIELDS))
    if protected:
        raise ValidationError(f"Fields managed by sync cannot be edited: {', '.join(protected)}")
    normalized: dict[str, Any] = {}
    for name, value in changes.items():
        if name in list_fields:
            value = tuple(value or ())
        elif name in _LINK_FIELDS and value:
            value = canonical_form(value)
        normalized[name] = value
    return normalized


def _display(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, tuple):
        return ", ".join(value)
    return str(value)


class RecordsService:
    """Local command/query interface used by the rest of the application.

    Writes land in the local store first; with ``auto_push`` they are then
    propagated through the orchestrator. A failed push is logged and never
    undoes the local write.
    """

    def __init__(
        self,
        case_repo: CaseRepository,
        summons_repo: SummonsRepository,
        activity_repo: ActivityLogRepository,
        transaction: TransactionFactory,
        *,
        orchestrator: SyncOrchestrator | None = None,
        auto_push: bool = False,
        user_id: str = "system",
        clock: Callable[[], str] = _now_iso,
    ) -> None:
        self._cases = case_repo
        self._summons = summons_repo
        self._activity = activity_repo
        self._transaction = transaction
        self._orchestrator = orchestrator
        self._auto_push = auto_push and orchestrator is not None
        self._user_id = user_id
        self._clock = clock
        self.last_push: PushResult | None = None

    # Cases

    def list_cases(self) -> list[CaseRecord]:
        return list(self._cases.list_all())

    def get_case(self, case_id: str) -> CaseRecord:
        record = self._cases.get(case_id)
        if record is None:
            raise RecordNotFoundError(RecordType.CASE.value, case_id)
        return record

    def create_case(self, name: str, **values: Any) -> CaseRecord:
        if not (name or "").strip():
            raise ValidationError("Case name is required.")
        normalized = _normalize_changes(CaseRecord, values, CASE_LIST_FIELDS)
        now = self._clock()
        record = CaseRecord(
            id=new_local_id("case"),
            name=name.strip(),
            **{**normalized, "created_at": now, "last_edited": now},
        )
        with self._transaction():
            self._cases.insert(record)
        logger.info("Created local case %s", record.id)
        return self._after_write(RecordType.CASE, record.id, self.get_case)

    def update_case(self, case_id: str, changes: dict[str, Any]) -> CaseRecord:
        current = self.get_case(case_id)
        normalized = _normalize_changes(CaseRecord, changes, CASE_LIST_FIELDS)
        if "name" in normalized and not (normalized["name"] or "").strip():
            raise ValidationError("Case name is required.")
        diff = {name: value for name, value in normalized.items() if getattr(current, name) != value}
        if not diff:
            return current
        diff["last_edited"] = self._clock()
        with self._transaction():
            self._cases.update_fields(case_id, diff)
        return self._after_write(RecordType.CASE, case_id, self.get_case)

    def delete_case(self, case_id: str) -> None:
        self.get_case(case_id)
        dependents = [record.id for record in self._summons.list_by_case(case_id)]
        with self._transaction():
            for summons_id in dependents:
                self._summons.delete(summons_id)
            self._cases.delete(case_id)
        logger.info("Deleted case %s and %s summonses", case_id, len(dependents))
        if self._auto_push:
            for summons_id in dependents:
                self._propagate_archive(RecordType.SUMMONS, summons_id)
            self._propagate_archive(RecordType.CASE, case_id)

    # Summonses

    def list_summons(self) -> list[SummonsRecord]:
        return list(self._summons.list_all())

    def list_summons_for_case(self, case_id: str) -> list[SummonsRecord]:
        return list(self._summons.list_by_case(case_id))

    def get_summons(self, summons_id: str) -> SummonsRecord:
        record = self._summons.get(summons_id)
        if record is None:
            raise RecordNotFoundError(RecordType.SUMMONS.value, summons_id)
        return record

    def create_summons(self, person_name: str, case_id: str = PENDING_LINK, **values: Any) -> SummonsRecord:
        if not (person_name or "").strip():
            raise ValidationError("Person name is required.")
        normalized = _normalize_changes(SummonsRecord, values, SUMMONS_LIST_FIELDS)
        normalized.pop("status", None)
        draft = SummonsRecord(
            id=new_local_id("summons"),
            case_id=canonical_form(case_id) if case_id else PENDING_LINK,
            person_name=person_name.strip(),
            created_at=self._clock(),
            **normalized,
        )
        record = replace(draft, status=infer_status(draft).value)
        with self._transaction():
            self._summons.insert(record)
            self._log(record.id, "created", f"Summons created for {record.person_name} ({record.status})")
        logger.info("Created local summons %s", record.id)
        return self._after_write(RecordType.SUMMONS, record.id, self.get_summons)

    def update_summons(self, summons_id: str, changes: dict[str, Any]) -> SummonsRecord:
        if "status" in changes:
            raise ValidationError("Status is derived from lifecycle flags; use advance_summons.")
        current = self.get_summons(summons_id)
        normalized = _normalize_changes(SummonsRecord, changes, SUMMONS_LIST_FIELDS)
        return self._apply_summons_changes(current, normalized)

    def advance_summons(self, summons_id: str, target: SummonsStatus | str, **data: Any) -> SummonsRecord:
        """Status-driven edit: validate the transition, then set the flags it implies."""
        current = self.get_summons(summons_id)
        normalized = _normalize_changes(SummonsRecord, data, SUMMONS_LIST_FIELDS)
        merged = {**{item.name: getattr(current, item.name) for item in fields(SummonsRecord)}, **normalized}
        check = validate_transition(current.status, target, merged)
        if not check.valid:
            raise ValidationError(" ".join(check.errors))
        return self._apply_summons_changes(
            current,
            {**normalized, **derive_flags_from_status(target)},
            status=SummonsStatus(target).value,
        )

    def editable_summons_fields(self, summons_id: str) -> tuple[str, ...]:
        return editable_fields(self.get_summons(summons_id).status)

    def delete_summons(self, summons_id: str) -> None:
        self.get_summons(summons_id)
        with self._transaction():
            self._summons.delete(summons_id)
        logger.info("Deleted summons %s", summons_id)
        if self._auto_push:
            self._propagate_archive(RecordType.SUMMONS, summons_id)

    def activity_for(self, summons_id: str) -> list[ActivityLogEntry]:
        return list(self._activity.list_for_summons(summons_id))

    def _apply_summons_changes(
        self,
        current: SummonsRecord,
        changes: dict[str, Any],
        *,
        status: str | None = None,
    ) -> SummonsRecord:
        diff = {name: value for name, value in changes.items() if getattr(current, name) != value}
        if status is not None and status != current.status:
            diff["status"] = status
        if not diff:
            return current
        if status is None and set(diff) & set(STATUS_INPUT_FIELDS):
            new_status = infer_status(replace(current, **diff)).value
            if new_status != current.status:
                diff["status"] = new_status

        with self._transaction():
            self._summons.update_fields(current.id, diff)
            for name, value in diff.items():
                if name == "status":
                    self._log(
                        current.id,
                        "status_changed",
                        f"Status changed from {current.status} to {value}",
                        field_name="status",
                        old_value=current.status,
                        new_value=str(value),
                    )
                    continue
                self._log(
                    current.id,
                    "field_changed",
                    f"{name} updated",
                    field_name=name,
                    old_value=_display(getattr(current, name)),
                    new_value=_display(value),
                )
        return self._after_write(RecordType.SUMMONS, current.id, self.get_summons)

    def _log(self, summons_id: str, action: str, description: str, **details: Any) -> None:
        self._activity.add(
            ActivityLogEntry(
                id=None,
                summons_id=summons_id,
                action=action,
                description=description,
                created_at=self._clock(),
                user_id=self._user_id,
                **details,
            )
        )

    def _after_write(self, record_type: RecordType, record_id: str, loader: Callable[[str], Any]) -> Any:
        if not self._auto_push or self._orchestrator is None:
            return loader(record_id)
        result = self._orchestrator.push_one(record_type, record_id)
        self.last_push = result
        if not result.success:
            logger.warning("Auto push of %s %s failed: %s", record_type.value, record_id, result.error)
            return loader(record_id)
        return loader(result.record_id)

    def _propagate_archive(self, record_type: RecordType, record_id: str) -> None:
        result = self._orchestrator.archive_one(record_type, record_id) if self._orchestrator else None
        if result is not None:
            self.last_push = result
            if not result.success:
                logger.warning("Auto archive of %s %s failed: %s", record_type.value, record_id, result.error)
