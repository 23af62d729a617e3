from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional


class RecordType(str, Enum):
    CASE = "case"
    SUMMONS = "summons"


@dataclass(frozen=True)
class CaseRecord:
    """A case as stored locally.

    ``synced_at`` is None until the record has been seen by at least one
    successful pull or push; only records carrying it can be tombstoned.
    """

    id: str
    name: str
    ecir_no: str = ""
    date_of_ecir: Optional[str] = None
    status: str = "Unknown"
    assigned_officer: tuple[str, ...] = ()
    activity: tuple[str, ...] = ()
    pao_amount: str = ""
    pao_date: Optional[str] = None
    active: bool = True
    whether_pc_filed: bool = False
    date_of_pc_filed: Optional[str] = None
    court_cognizance_date: Optional[str] = None
    poc_in_cr: str = ""
    created_at: Optional[str] = None
    last_edited: Optional[str] = None
    synced_at: Optional[str] = None


@dataclass(frozen=True)
class SummonsRecord:
    """A summons as stored locally.

    Lifecycle flags are independent booleans; ``status`` is derived from them
    by ``summons_status.infer_status`` and never edited on its own during sync.
    """

    id: str
    case_id: str
    person_name: str
    person_role: str = "Witness"
    contact_number: str = ""
    email: Optional[str] = None
    issue_date: Optional[str] = None
    served_date: Optional[str] = None
    appearance_date: Optional[str] = None
    appearance_time: Optional[str] = None
    rescheduled_date: Optional[str] = None
    status: str = "Draft"
    statement_status: str = ""
    priority: str = "Medium"
    tone: str = ""
    summons_response: str = ""
    date_of_1st_statement: Optional[str] = None
    date_of_2nd_statement: Optional[str] = None
    date_of_3rd_statement: Optional[str] = None
    is_issued: bool = False
    is_served: bool = False
    requests_reschedule: bool = False
    statement_ongoing: bool = False
    statement_recorded: bool = False
    rescheduled_date_communicated: bool = False
    followup_required: bool = False
    notes: str = ""
    mode_of_service: tuple[str, ...] = ()
    purpose: tuple[str, ...] = ()
    previous_summon_id: Optional[str] = None
    created_at: Optional[str] = None
    synced_at: Optional[str] = None


@dataclass(frozen=True)
class ActivityLogEntry:
    id: Optional[int]
    summons_id: str
    action: str
    description: str
    created_at: str
    user_id: str = "system"
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None


BOOKKEEPING_FIELDS = ("id", "created_at", "synced_at")

# Written only by local edits; a pull update never touches them.
SUMMONS_LOCAL_OWNED_FIELDS = ("notes", "purpose", "mode_of_service", "served_date")
CASE_LOCAL_OWNED_FIELDS: tuple[str, ...] = ()

SUMMONS_FLAG_FIELDS = (
    "is_issued",
    "is_served",
    "requests_reschedule",
    "statement_ongoing",
    "statement_recorded",
    "rescheduled_date_communicated",
    "followup_required",
)
CASE_FLAG_FIELDS = ("active", "whether_pc_filed")
SUMMONS_LIST_FIELDS = ("mode_of_service", "purpose")
CASE_LIST_FIELDS = ("assigned_officer", "activity")


def _remote_owned(record_cls: type, local_owned: tuple[str, ...]) -> tuple[str, ...]:
    excluded = set(BOOKKEEPING_FIELDS) | set(local_owned)
    return tuple(item.name for item in fields(record_cls) if item.name not in excluded)


CASE_REMOTE_OWNED_FIELDS = _remote_owned(CaseRecord, CASE_LOCAL_OWNED_FIELDS)
SUMMONS_REMOTE_OWNED_FIELDS = _remote_owned(SummonsRecord, SUMMONS_LOCAL_OWNED_FIELDS)


def remote_owned_fields(record_type: RecordType) -> tuple[str, ...]:
    if record_type is RecordType.CASE:
        return CASE_REMOTE_OWNED_FIELDS
    return SUMMONS_REMOTE_OWNED_FIELDS
