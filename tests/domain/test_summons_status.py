from __future__ import annotations

import pytest

from summons_tracker.domain.summons_status import (
    SummonsStatus,
    can_transition,
    derive_flags_from_status,
    editable_fields,
    infer_status,
    is_field_editable,
    next_statuses,
    validate_transition,
)


def test_infer_status_without_flags_is_draft() -> None:
    assert infer_status({}) is SummonsStatus.DRAFT


def test_infer_status_most_advanced_stage_wins() -> None:
    flags = {"is_issued": True, "is_served": True, "statement_recorded": True}

    assert infer_status(flags) == "Statement Completed"


@pytest.mark.parametrize(
    ("flags", "expected"),
    [
        ({"is_issued": True}, SummonsStatus.ISSUED),
        ({"is_issued": True, "is_served": True}, SummonsStatus.AWAITING_APPEARANCE),
        ({"is_served": True, "requests_reschedule": True}, SummonsStatus.RESCHEDULED),
        ({"is_served": True, "rescheduled_date": "2024-07-01"}, SummonsStatus.RESCHEDULED),
        (
            {"is_served": True, "rescheduled_date": "2024-07-01", "rescheduled_date_communicated": True},
            SummonsStatus.AWAITING_APPEARANCE,
        ),
        ({"requests_reschedule": True, "statement_ongoing": True}, SummonsStatus.STATEMENT_IN_PROGRESS),
    ],
)
def test_infer_status_precedence(flags: dict, expected: SummonsStatus) -> None:
    assert infer_status(flags) is expected


def test_infer_status_reads_record_attributes() -> None:
    class _Record:
        is_issued = True
        is_served = False

    assert infer_status(_Record()) is SummonsStatus.ISSUED  # type: ignore[arg-type]


def test_transitions_follow_workflow_graph() -> None:
    assert can_transition("Draft", "Issued")
    assert not can_transition("Draft", "Served")
    assert not can_transition("Closed", "Draft")
    assert not can_transition("Bogus", "Issued")
    assert next_statuses("Being Served") == (SummonsStatus.SERVED, SummonsStatus.SERVICE_FAILED)
    assert next_statuses("Bogus") == ()


def test_validate_transition_reports_missing_required_fields() -> None:
    check = validate_transition("Draft", "Issued", {"person_name": "A", "case_id": "c"})

    assert not check.valid
    assert check.errors == ('Issue Date is required to advance to "Issued".',)


def test_validate_transition_rejects_invalid_path() -> None:
    check = validate_transition("Draft", "Closed", {})

    assert not check.valid
    assert "Invalid workflow path" in check.errors[0]


def test_awaiting_appearance_requires_served_date() -> None:
    check = validate_transition("Served", "Awaiting Appearance", {"appearance_date": "2024-07-01"})

    assert not check.valid
    assert any("not been served" in error for error in check.errors)

    ok = validate_transition(
        "Served",
        "Awaiting Appearance",
        {"appearance_date": "2024-07-01", "served_date": "2024-06-20"},
    )
    assert ok.valid


def test_empty_multi_select_counts_as_missing() -> None:
    check = validate_transition("Issued", "Being Served", {"mode_of_service": ()})

    assert not check.valid


def test_editable_fields_depend_on_status() -> None:
    assert "person_name" in editable_fields("Draft")
    assert editable_fields("Closed") == ()
    assert editable_fields("nope") == ()
    assert is_field_editable("Rescheduled", "rescheduled_date_communicated")
    assert not is_field_editable("Issued", "notes")


def test_derive_flags_from_status_round_trips_through_inference() -> None:
    for status in (
        SummonsStatus.DRAFT,
        SummonsStatus.ISSUED,
        SummonsStatus.STATEMENT_IN_PROGRESS,
        SummonsStatus.STATEMENT_COMPLETED,
    ):
        assert infer_status(derive_flags_from_status(status)) is status


def test_derive_flags_for_served_sets_issued_and_served() -> None:
    flags = derive_flags_from_status("Served")

    assert flags["is_issued"] and flags["is_served"]
    assert not flags["statement_recorded"]
