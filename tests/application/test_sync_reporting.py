from __future__ import annotations

from summons_tracker.application.sync.reporting import MAX_REPORTED_ERRORS, build_sync_report, format_sync_summary
from summons_tracker.domain.sync_models import SyncAllResult, SyncResult


def test_report_ok_when_both_types_clean() -> None:
    result = SyncAllResult(
        cases=SyncResult("case", added=2, unchanged=1),
        summons=SyncResult("summons", updated=3, deleted=1),
    )

    report = build_sync_report(result, correlation_id="cid-1")

    assert report["status"] == "OK"
    assert report["totals"] == {"added": 2, "updated": 3, "unchanged": 1, "deleted": 1, "errors": 0}
    assert report["correlation_id"] == "cid-1"


def test_report_partial_and_truncated_errors() -> None:
    errors = [f"err {index}" for index in range(MAX_REPORTED_ERRORS + 5)]
    result = SyncAllResult(cases=SyncResult("case", errors=errors), summons=SyncResult("summons"))

    report = build_sync_report(result)

    assert report["status"] == "PARTIAL"
    assert report["types"]["cases"]["status"] == "PARTIAL"
    assert len(report["errors"]) == MAX_REPORTED_ERRORS
    assert report["errors_truncated"] == 5
    assert "correlation_id" not in report


def test_report_failed_when_a_type_failed() -> None:
    result = SyncAllResult(cases=SyncResult.failed("case", "offline"), summons=SyncResult("summons"))

    assert build_sync_report(result)["status"] == "FAILED"


def test_format_sync_summary() -> None:
    result = SyncAllResult(
        cases=SyncResult.failed("case", "offline"),
        summons=SyncResult("summons", added=1, unchanged=4, errors=["x"]),
    )

    assert format_sync_summary(result) == [
        "Cases: failed (offline)",
        "Summons: +1 / ~0 / -0 (4 unchanged), 1 record errors",
    ]
