from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from summons_tracker.domain.models import RecordType


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one pull for one record type.

    ``success`` is False only for a hard failure (remote fetch, auth or
    configuration). Per-record problems land in ``errors`` and leave
    ``success`` True.
    """

    record_type: str
    success: bool = True
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, record_type: RecordType | str, message: str) -> "SyncResult":
        return cls(record_type=RecordType(record_type).value, success=False, errors=[message])

    @property
    def written(self) -> int:
        return self.added + self.updated + self.deleted

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SyncAllResult:
    cases: SyncResult
    summons: SyncResult

    @property
    def success(self) -> bool:
        return self.cases.success and self.summons.success

    def to_dict(self) -> dict[str, Any]:
        return {"cases": self.cases.to_dict(), "summons": self.summons.to_dict()}


@dataclass(frozen=True)
class PushResult:
    success: bool
    record_type: str
    record_id: str
    new_id: str | None = None
    created: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RemoteUpdateResult:
    """Explicit outcome of an in-place remote update.

    ``not_found`` covers both a missing page and an identifier the remote
    system rejects as malformed; it is the trigger for the create path, not a
    failure.
    """

    status: Literal["updated", "not_found"]
    page: dict[str, Any] | None = None
    reason: str = ""

    @property
    def not_found(self) -> bool:
        return self.status == "not_found"

    @classmethod
    def updated(cls, page: dict[str, Any]) -> "RemoteUpdateResult":
        return cls(status="updated", page=page)

    @classmethod
    def missing(cls, reason: str = "") -> "RemoteUpdateResult":
        return cls(status="not_found", reason=reason)
