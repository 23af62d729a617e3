from __future__ import annotations

from typing import Any, Iterable

from summons_tracker.domain.identifiers import canonical_form, is_canonical_id
from summons_tracker.domain.models import CaseRecord, SummonsRecord

RICH_TEXT_LIMIT = 2000
CASE_RELATION_PROPERTY = "Case "
PREVIOUS_SUMMON_PROPERTY = "Previous Summon"
SUMMONS_RELATION_PROPERTIES = (CASE_RELATION_PROPERTY, PREVIOUS_SUMMON_PROPERTY)


def title(value: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": value or ""}}]}


def rich_text(value: str | None) -> dict[str, Any]:
    if not value:
        return {"rich_text": []}
    return {"rich_text": [{"text": {"content": value[:RICH_TEXT_LIMIT]}}]}


def select(value: str) -> dict[str, Any]:
    return {"select": {"name": value}}


def multi_select(values: Iterable[str]) -> dict[str, Any]:
    return {"multi_select": [{"name": value} for value in values if value]}


def date(start: str) -> dict[str, Any]:
    return {"date": {"start": start}}


def checkbox(value: bool) -> dict[str, Any]:
    return {"checkbox": bool(value)}


def relation(page_id: str) -> dict[str, Any]:
    return {"relation": [{"id": page_id}]}


def build_case_properties(record: CaseRecord) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "Name": title(record.name),
        "ECIR NO.": rich_text(record.ecir_no),
        "Status": select(record.status or "Unknown"),
        "PAO Amount": rich_text(record.pao_amount),
        "POC in Cr": rich_text(record.poc_in_cr),
    }
    if record.assigned_officer:
        properties["Assigned officer"] = multi_select(record.assigned_officer)
    if record.activity:
        properties["Activity"] = multi_select(record.activity)

    for name, value in (
        ("Date of ECIR", record.date_of_ecir),
        ("PAO Date", record.pao_date),
        ("Date of PC Filed", record.date_of_pc_filed),
        ("Court Cognizance Date", record.court_cognizance_date),
    ):
        if value:
            properties[name] = date(value)

    properties["Active"] = checkbox(record.active)
    properties["Whether PC Filed"] = checkbox(record.whether_pc_filed)
    return properties


def appearance_start(record: SummonsRecord) -> str | None:
    if not record.appearance_date:
        return None
    if record.appearance_time:
        return f"{record.appearance_date}T{record.appearance_time}:00.000Z"
    return record.appearance_date


def build_summons_properties(record: SummonsRecord) -> dict[str, Any]:
    properties: dict[str, Any] = {"Name of Person": title(record.person_name)}
    for name, value in (
        ("Person Role", record.person_role),
        ("Priority", record.priority),
        ("Tone Required", record.tone),
        ("Summons response", record.summons_response),
        ("Statement Status", record.statement_status),
    ):
        if value:
            properties[name] = select(value)

    # Relations to records the remote side has never seen would be rejected.
    if is_canonical_id(record.case_id):
        properties[CASE_RELATION_PROPERTY] = relation(canonical_form(record.case_id))
    if is_canonical_id(record.previous_summon_id):
        properties[PREVIOUS_SUMMON_PROPERTY] = relation(canonical_form(record.previous_summon_id or ""))

    start = appearance_start(record)
    for name, value in (
        ("Date of Summon Issue", record.issue_date),
        ("Scheduled Appearance Date", start),
        ("Rescheduled Date", record.rescheduled_date),
        ("Date of 1st Statement", record.date_of_1st_statement),
        ("Date of 2nd Statement", record.date_of_2nd_statement),
        ("Date of 3rd Statement", record.date_of_3rd_statement),
    ):
        if value:
            properties[name] = date(value)

    if record.mode_of_service:
        properties["Mode of Service"] = multi_select(record.mode_of_service)
    if record.purpose:
        properties["Purpose of Summons"] = multi_select(record.purpose)

    properties["Summon issued"] = checkbox(record.is_issued)
    properties["SummonServed"] = checkbox(record.is_served)
    properties["Reschedule request received"] = checkbox(record.requests_reschedule)
    properties["Appeared ongoing staement"] = checkbox(record.statement_ongoing)
    properties["Statement Completed"] = checkbox(record.statement_recorded)
    properties["Rescheduled date communicated"] = checkbox(record.rescheduled_date_communicated)
    properties["Followup required"] = checkbox(record.followup_required)
    return properties


def with_local_id_tag(properties: dict[str, Any], property_name: str, local_id: str) -> dict[str, Any]:
    if not property_name:
        return dict(properties)
    return {**properties, property_name: rich_text(local_id)}


def without_properties(properties: dict[str, Any], names: Iterable[str]) -> dict[str, Any]:
    excluded = set(names)
    return {name: value for name, value in properties.items() if name not in excluded}


def has_any_property(properties: dict[str, Any], names: Iterable[str]) -> bool:
    return any(name in properties for name in names)
