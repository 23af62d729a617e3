from __future__ import annotations

from typing import Any

from summons_tracker.domain.sync_models import SyncAllResult, SyncResult

MAX_REPORTED_ERRORS = 20


def _type_status(result: SyncResult) -> str:
    if not result.success:
        return "FAILED"
    if result.errors:
        return "PARTIAL"
    return "OK"


def build_sync_report(result: SyncAllResult, *, correlation_id: str | None = None) -> dict[str, Any]:
    """Aggregate view of one ``sync_all`` run for the CLI and callers that only show totals."""
    per_type = {"cases": result.cases, "summons": result.summons}
    totals = {
        "added": sum(item.added for item in per_type.values()),
        "updated": sum(item.updated for item in per_type.values()),
        "unchanged": sum(item.unchanged for item in per_type.values()),
        "deleted": sum(item.deleted for item in per_type.values()),
        "errors": sum(len(item.errors) for item in per_type.values()),
    }
    errors = [f"[{name}] {message}" for name, item in per_type.items() for message in item.errors]
    statuses = {name: _type_status(item) for name, item in per_type.items()}
    if all(status == "OK" for status in statuses.values()):
        overall = "OK"
    elif result.success:
        overall = "PARTIAL"
    else:
        overall = "FAILED"
    report: dict[str, Any] = {
        "status": overall,
        "types": {name: {**item.to_dict(), "status": statuses[name]} for name, item in per_type.items()},
        "totals": totals,
        "errors": errors[:MAX_REPORTED_ERRORS],
        "errors_truncated": max(0, len(errors) - MAX_REPORTED_ERRORS),
    }
    if correlation_id:
        report["correlation_id"] = correlation_id
    return report


def format_sync_summary(result: SyncAllResult) -> list[str]:
    lines = []
    for name, item in (("Cases", result.cases), ("Summons", result.summons)):
        if not item.success:
            reason = item.errors[0] if item.errors else "unknown error"
            lines.append(f"{name}: failed ({reason})")
            continue
        line = f"{name}: +{item.added} / ~{item.updated} / -{item.deleted} ({item.unchanged} unchanged)"
        if item.errors:
            line += f", {len(item.errors)} record errors"
        lines.append(line)
    return lines
