"""Typed extraction of remote page properties into local records.

Every accessor takes property-name aliases in priority order and falls back
to a default when none of them yields a value. Schema drift on the remote
side (renamed, removed or retyped properties) must never fail a record.
"""

from __future__ import annotations

from typing import Any, Mapping

from summons_tracker.domain.identifiers import PENDING_LINK
from summons_tracker.domain.models import CaseRecord, SummonsRecord
from summons_tracker.domain.summons_status import LifecycleFlags, infer_status


def _join_plain_text(segments: Any) -> str:
    if not isinstance(segments, list):
        return ""
    parts: list[str] = []
    for segment in segments:
        if not isinstance(segment, Mapping):
            continue
        plain = segment.get("plain_text")
        if plain is None:
            content = segment.get("text")
            plain = content.get("content") if isinstance(content, Mapping) else None
        if plain:
            parts.append(str(plain))
    return "".join(parts).strip()


class PropertyBag:
    def __init__(self, properties: Mapping[str, Any] | None) -> None:
        self._properties = properties if isinstance(properties, Mapping) else {}

    def _raw(self, name: str, shape: str) -> Any:
        prop = self._properties.get(name)
        if not isinstance(prop, Mapping):
            return None
        return prop.get(shape)

    def title(self, *aliases: str, default: str = "") -> str:
        for name in aliases:
            value = _join_plain_text(self._raw(name, "title"))
            if value:
                return value
        return default

    def text(self, *aliases: str, default: str = "") -> str:
        for name in aliases:
            value = _join_plain_text(self._raw(name, "rich_text"))
            if value:
                return value
        return default

    def select(self, *aliases: str, default: str | None = None) -> str | None:
        for name in aliases:
            option = self._raw(name, "select")
            if isinstance(option, Mapping) and option.get("name"):
                return str(option["name"])
        return default

    def multi_select(self, *aliases: str) -> tuple[str, ...]:
        for name in aliases:
            options = self._raw(name, "multi_select")
            if not isinstance(options, list):
                continue
            values = tuple(
                str(option["name"]) for option in options if isinstance(option, Mapping) and option.get("name")
            )
            if values:
                return values
        return ()

    def checkbox(self, *aliases: str, default: bool = False) -> bool:
        for name in aliases:
            value = self._raw(name, "checkbox")
            if isinstance(value, bool):
                return value
        return default

    def date(self, *aliases: str) -> str | None:
        for name in aliases:
            value = self._raw(name, "date")
            if isinstance(value, Mapping) and value.get("start"):
                return str(value["start"])
        return None

    def relation(self, *aliases: str, default: str | None = None) -> str | None:
        for name in aliases:
            items = self._raw(name, "relation")
            if not isinstance(items, list):
                continue
            for item in items:
                if isinstance(item, Mapping) and item.get("id"):
                    return str(item["id"])
        return default

    def phone(self, *aliases: str) -> str | None:
        for name in aliases:
            value = self._raw(name, "phone_number")
            if value:
                return str(value)
        return None

    def email(self, *aliases: str) -> str | None:
        for name in aliases:
            value = self._raw(name, "email")
            if value:
                return str(value)
        return None


def split_datetime(raw: str | None) -> tuple[str | None, str | None]:
    """``2024-05-01T10:30:00.000Z`` -> (``2024-05-01``, ``10:30``)."""
    if not raw:
        return None, None
    date_part, separator, time_part = raw.partition("T")
    if not separator:
        return date_part, None
    return date_part, time_part[:5] or None


def _page_id(page: Mapping[str, Any]) -> str:
    page_id = page.get("id") if isinstance(page, Mapping) else None
    if not page_id:
        raise ValueError("remote page has no id")
    return str(page_id)


def map_case_page(page: Mapping[str, Any], synced_at: str) -> CaseRecord:
    bag = PropertyBag(page.get("properties"))
    return CaseRecord(
        id=_page_id(page),
        name=bag.title("Case Name", "Name", default="Unknown Case"),
        ecir_no=bag.text("ECIR No", "ECIR Number", "ECIR NO."),
        date_of_ecir=bag.date("Date of ECIR"),
        status=bag.select("Status", default="Unknown") or "Unknown",
        assigned_officer=bag.multi_select("Assigned Officer", "Assigned officer"),
        activity=bag.multi_select("Activity"),
        pao_amount=bag.text("PAO Amount"),
        pao_date=bag.date("PAO Date"),
        active=bag.checkbox("Active", default=True),
        whether_pc_filed=bag.checkbox("Whether PC Filed"),
        date_of_pc_filed=bag.date("Date of PC Filed"),
        court_cognizance_date=bag.date("Court Cognizance Date"),
        poc_in_cr=bag.text("POC in Cr"),
        created_at=page.get("created_time"),
        last_edited=page.get("last_edited_time"),
        synced_at=synced_at,
    )


def map_summons_page(page: Mapping[str, Any], synced_at: str) -> SummonsRecord:
    bag = PropertyBag(page.get("properties"))
    appearance_date, appearance_time = split_datetime(
        bag.date("Next Date Fixed", "Appearance Date", "Scheduled Appearance Date")
    )
    rescheduled_date, _ = split_datetime(bag.date("Rescheduled Date"))
    flags = LifecycleFlags(
        is_issued=bag.checkbox("Summon issued"),
        is_served=bag.checkbox("SummonServed"),
        requests_reschedule=bag.checkbox("Reschedule request received"),
        statement_ongoing=bag.checkbox("Appeared ongoing staement"),
        statement_recorded=bag.checkbox("Statement Completed"),
        rescheduled_date=rescheduled_date,
        rescheduled_date_communicated=bag.checkbox("Rescheduled date communicated"),
    )
    return SummonsRecord(
        id=_page_id(page),
        case_id=bag.relation("Case ", "Case", default=PENDING_LINK) or PENDING_LINK,
        person_name=bag.title("Name of Person", "Name", default="Unknown Name"),
        person_role=bag.select("Person Role", default="Witness") or "Witness",
        contact_number=bag.phone("Contact Number", "Phone") or bag.text("Contact"),
        email=bag.email("Email"),
        issue_date=bag.date("Date of Summon Issue", "Issue Date"),
        appearance_date=appearance_date,
        appearance_time=appearance_time,
        rescheduled_date=rescheduled_date,
        status=infer_status(flags).value,
        statement_status=bag.select("Statement Status", "Status (Statement)", default="") or "",
        priority=bag.select("Priority", default="Medium") or "Medium",
        tone=bag.select("Tone", "Tone Required", default="") or "",
        summons_response=bag.select("Summons response", "Summons Response", default="") or "",
        date_of_1st_statement=bag.date("Date of 1st Statement", "1st Statement Date"),
        date_of_2nd_statement=bag.date("Date of 2nd Statement", "2nd Statement Date"),
        date_of_3rd_statement=bag.date("Date of 3rd Statement", "3rd Statement Date"),
        is_issued=flags.is_issued,
        is_served=flags.is_served,
        requests_reschedule=flags.requests_reschedule,
        statement_ongoing=flags.statement_ongoing,
        statement_recorded=flags.statement_recorded,
        rescheduled_date_communicated=flags.rescheduled_date_communicated,
        followup_required=bag.checkbox("Followup required"),
        notes=bag.text("Notes"),
        mode_of_service=bag.multi_select("Mode of Service"),
        purpose=bag.multi_select("Purpose", "Purpose of Summons"),
        previous_summon_id=bag.relation("Previous Summon", "Previous Summons"),
        created_at=page.get("created_time"),
        synced_at=synced_at,
    )
