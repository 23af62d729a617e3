"""Summons lifecycle: status labels, inference from flags and transition rules.

The remote database has no unified status column, only independent
checkboxes and dates. ``infer_status`` is the one place where those are
collapsed into a label; the pull path and local edits both go through it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class SummonsStatus(str, Enum):
    DRAFT = "Draft"
    ISSUED = "Issued"
    BEING_SERVED = "Being Served"
    SERVICE_FAILED = "Service Failed"
    SERVED = "Served"
    AWAITING_APPEARANCE = "Awaiting Appearance"
    RESCHEDULED = "Rescheduled"
    STATEMENT_IN_PROGRESS = "Statement In Progress"
    STATEMENT_COMPLETED = "Statement Completed"
    CLOSED = "Closed"

    def __str__(self) -> str:
        return self.value


# Lifecycle order; index comparisons below rely on it.
SUMMONS_STATUSES: tuple[SummonsStatus, ...] = tuple(SummonsStatus)

SUMMONS_TRANSITIONS: dict[SummonsStatus, tuple[SummonsStatus, ...]] = {
    SummonsStatus.DRAFT: (SummonsStatus.ISSUED,),
    SummonsStatus.ISSUED: (SummonsStatus.BEING_SERVED,),
    SummonsStatus.BEING_SERVED: (SummonsStatus.SERVED, SummonsStatus.SERVICE_FAILED),
    SummonsStatus.SERVICE_FAILED: (SummonsStatus.BEING_SERVED, SummonsStatus.CLOSED),
    SummonsStatus.SERVED: (SummonsStatus.AWAITING_APPEARANCE,),
    SummonsStatus.AWAITING_APPEARANCE: (SummonsStatus.RESCHEDULED, SummonsStatus.STATEMENT_IN_PROGRESS),
    SummonsStatus.RESCHEDULED: (SummonsStatus.AWAITING_APPEARANCE,),
    SummonsStatus.STATEMENT_IN_PROGRESS: (SummonsStatus.STATEMENT_COMPLETED,),
    SummonsStatus.STATEMENT_COMPLETED: (SummonsStatus.CLOSED,),
    SummonsStatus.CLOSED: (),
}

# Fields whose change can move the derived status.
STATUS_INPUT_FIELDS = (
    "is_issued",
    "is_served",
    "requests_reschedule",
    "statement_ongoing",
    "statement_recorded",
    "rescheduled_date",
    "rescheduled_date_communicated",
)


@dataclass(frozen=True)
class LifecycleFlags:
    is_issued: bool = False
    is_served: bool = False
    requests_reschedule: bool = False
    statement_ongoing: bool = False
    statement_recorded: bool = False
    rescheduled_date: str | None = None
    rescheduled_date_communicated: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | Any) -> "LifecycleFlags":
        """Accepts a dict or any object exposing the flag attributes (e.g. a record)."""

        def read(name: str) -> Any:
            if isinstance(data, Mapping):
                return data.get(name)
            return getattr(data, name, None)

        rescheduled = read("rescheduled_date")
        return cls(
            is_issued=bool(read("is_issued")),
            is_served=bool(read("is_served")),
            requests_reschedule=bool(read("requests_reschedule")),
            statement_ongoing=bool(read("statement_ongoing")),
            statement_recorded=bool(read("statement_recorded")),
            rescheduled_date=str(rescheduled) if rescheduled else None,
            rescheduled_date_communicated=bool(read("rescheduled_date_communicated")),
        )


def infer_status(flags: LifecycleFlags | Mapping[str, Any]) -> SummonsStatus:
    """Collapse lifecycle flags into one label. Most advanced stage wins.

    >>> infer_status({"is_issued": True, "is_served": True, "statement_recorded": True})
    <SummonsStatus.STATEMENT_COMPLETED: 'Statement Completed'>
    """
    if not isinstance(flags, LifecycleFlags):
        flags = LifecycleFlags.from_mapping(flags)

    if flags.statement_recorded:
        return SummonsStatus.STATEMENT_COMPLETED
    if flags.statement_ongoing:
        return SummonsStatus.STATEMENT_IN_PROGRESS
    if flags.requests_reschedule or (flags.rescheduled_date and not flags.rescheduled_date_communicated):
        return SummonsStatus.RESCHEDULED
    if flags.is_served:
        return SummonsStatus.AWAITING_APPEARANCE
    if flags.is_issued:
        return SummonsStatus.ISSUED
    return SummonsStatus.DRAFT


def can_transition(current: SummonsStatus | str, target: SummonsStatus | str) -> bool:
    try:
        return SummonsStatus(target) in SUMMONS_TRANSITIONS[SummonsStatus(current)]
    except ValueError:
        return False


def next_statuses(current: SummonsStatus | str) -> tuple[SummonsStatus, ...]:
    try:
        return SUMMONS_TRANSITIONS[SummonsStatus(current)]
    except ValueError:
        return ()


_REQUIRED_FOR_TARGET: dict[SummonsStatus, tuple[str, ...]] = {
    SummonsStatus.ISSUED: ("person_name", "case_id", "issue_date"),
    SummonsStatus.BEING_SERVED: ("mode_of_service",),
    SummonsStatus.SERVED: ("served_date",),
    SummonsStatus.AWAITING_APPEARANCE: ("appearance_date",),
    SummonsStatus.RESCHEDULED: ("rescheduled_date",),
    SummonsStatus.STATEMENT_COMPLETED: ("date_of_1st_statement",),
}

FIELD_LABELS: dict[str, str] = {
    "person_name": "Person Name",
    "person_role": "Person Role",
    "case_id": "Case",
    "contact_number": "Contact Number",
    "email": "Email",
    "priority": "Priority",
    "tone": "Tone",
    "purpose": "Purpose",
    "notes": "Notes",
    "issue_date": "Issue Date",
    "served_date": "Served Date",
    "mode_of_service": "Mode of Service",
    "appearance_date": "Appearance Date",
    "appearance_time": "Appearance Time",
    "rescheduled_date": "Rescheduled Date",
    "rescheduled_date_communicated": "Rescheduled Date Communicated",
    "statement_status": "Statement Status",
    "date_of_1st_statement": "1st Statement Date",
    "date_of_2nd_statement": "2nd Statement Date",
    "date_of_3rd_statement": "3rd Statement Date",
    "followup_required": "Follow-up Required",
    "summons_response": "Summons Response",
    "status": "Status",
}


def _required_fields(target: SummonsStatus | str) -> tuple[str, ...]:
    return _REQUIRED_FOR_TARGET.get(SummonsStatus(target), ())


@dataclass(frozen=True)
class TransitionCheck:
    valid: bool
    errors: tuple[str, ...] = ()


def validate_transition(
    current: SummonsStatus | str,
    target: SummonsStatus | str,
    data: Mapping[str, Any],
) -> TransitionCheck:
    if not can_transition(current, target):
        return TransitionCheck(False, (f'Cannot transition from "{current}" to "{target}". Invalid workflow path.',))

    current_status = SummonsStatus(current)
    target_status = SummonsStatus(target)
    errors: list[str] = []
    for field_name in _required_fields(target_status):
        value = data.get(field_name)
        if value is None or value == "" or (isinstance(value, (list, tuple)) and not value):
            label = FIELD_LABELS.get(field_name, field_name)
            errors.append(f'{label} is required to advance to "{target_status}".')

    served_index = SUMMONS_STATUSES.index(SummonsStatus.SERVED)
    if target_status in (SummonsStatus.STATEMENT_IN_PROGRESS, SummonsStatus.STATEMENT_COMPLETED):
        if SUMMONS_STATUSES.index(current_status) < served_index:
            errors.append("Cannot record statement: summons has not been served yet.")
    if target_status is SummonsStatus.AWAITING_APPEARANCE and not data.get("served_date"):
        errors.append("Cannot set appearance date: summons has not been served.")

    return TransitionCheck(not errors, tuple(errors))


_DRAFT_FIELDS = (
    "person_name",
    "person_role",
    "case_id",
    "priority",
    "tone",
    "purpose",
    "notes",
    "contact_number",
    "email",
)

EDITABLE_FIELDS_BY_STATUS: dict[SummonsStatus, tuple[str, ...]] = {
    SummonsStatus.DRAFT: _DRAFT_FIELDS,
    SummonsStatus.ISSUED: ("mode_of_service", "issue_date"),
    SummonsStatus.BEING_SERVED: ("served_date", "mode_of_service"),
    SummonsStatus.SERVICE_FAILED: ("mode_of_service", "notes"),
    SummonsStatus.SERVED: ("appearance_date", "appearance_time"),
    SummonsStatus.AWAITING_APPEARANCE: ("requests_reschedule", "rescheduled_date"),
    SummonsStatus.RESCHEDULED: ("rescheduled_date", "rescheduled_date_communicated"),
    SummonsStatus.STATEMENT_IN_PROGRESS: (
        "statement_status",
        "date_of_1st_statement",
        "date_of_2nd_statement",
        "date_of_3rd_statement",
        "notes",
    ),
    SummonsStatus.STATEMENT_COMPLETED: ("followup_required",),
    SummonsStatus.CLOSED: (),
}


def editable_fields(status: SummonsStatus | str) -> tuple[str, ...]:
    try:
        return EDITABLE_FIELDS_BY_STATUS[SummonsStatus(status)]
    except ValueError:
        return ()


def is_field_editable(status: SummonsStatus | str, field_name: str) -> bool:
    return field_name in editable_fields(status)


def derive_flags_from_status(status: SummonsStatus | str) -> dict[str, bool]:
    """Checkbox values implied by a status chosen in a status-driven form."""
    current = SummonsStatus(status)
    index = SUMMONS_STATUSES.index(current)
    return {
        "is_issued": index >= SUMMONS_STATUSES.index(SummonsStatus.ISSUED),
        "is_served": index >= SUMMONS_STATUSES.index(SummonsStatus.SERVED),
        "requests_reschedule": current is SummonsStatus.RESCHEDULED,
        "statement_ongoing": current is SummonsStatus.STATEMENT_IN_PROGRESS,
        "statement_recorded": index >= SUMMONS_STATUSES.index(SummonsStatus.STATEMENT_COMPLETED),
    }
