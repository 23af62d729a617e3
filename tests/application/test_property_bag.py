from __future__ import annotations

import pytest

from summons_tracker.application.property_bag import PropertyBag, map_case_page, map_summons_page, split_datetime
from summons_tracker.domain.identifiers import PENDING_LINK

CASE_ID = "11111111-1111-4111-8111-111111111111"


def test_text_accessors_join_segments_and_fall_back_to_aliases() -> None:
    bag = PropertyBag(
        {
            "ECIR NO.": {"rich_text": [{"plain_text": "EC/"}, {"text": {"content": "42"}}]},
            "Empty": {"rich_text": []},
        }
    )

    assert bag.text("Empty", "ECIR NO.") == "EC/42"
    assert bag.text("Missing", default="n/a") == "n/a"


def test_accessors_tolerate_retyped_properties() -> None:
    bag = PropertyBag({"Active": {"select": {"name": "yes"}}, "Officer": {"multi_select": "oops"}})

    assert bag.checkbox("Active", default=True) is True
    assert bag.multi_select("Officer") == ()
    assert bag.select("Active") == "yes"
    assert PropertyBag(None).date("anything") is None


def test_relation_phone_and_email() -> None:
    bag = PropertyBag(
        {
            "Case ": {"relation": [{"id": CASE_ID}]},
            "Contact Number": {"phone_number": "+91 99999"},
            "Email": {"email": "a@example.com"},
        }
    )

    assert bag.relation("Case ") == CASE_ID
    assert bag.relation("Previous Summon") is None
    assert bag.phone("Contact Number") == "+91 99999"
    assert bag.email("Email") == "a@example.com"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-01T10:30:00.000Z", ("2024-05-01", "10:30")),
        ("2024-05-01", ("2024-05-01", None)),
        (None, (None, None)),
    ],
)
def test_split_datetime(raw: str | None, expected: tuple) -> None:
    assert split_datetime(raw) == expected


def test_map_case_page_applies_defaults() -> None:
    record = map_case_page({"id": CASE_ID, "properties": {}}, "2024-06-01T00:00:00Z")

    assert record.name == "Unknown Case"
    assert record.status == "Unknown"
    assert record.active is True
    assert record.synced_at == "2024-06-01T00:00:00Z"


def test_map_case_page_reads_aliases() -> None:
    record = map_case_page(
        {
            "id": CASE_ID,
            "last_edited_time": "2024-05-30T00:00:00.000Z",
            "properties": {
                "Case Name": {"title": [{"plain_text": "Smuggling"}]},
                "ECIR Number": {"rich_text": [{"plain_text": "E-1"}]},
                "Assigned officer": {"multi_select": [{"name": "Rao"}, {"name": "Iyer"}]},
                "Date of ECIR": {"date": {"start": "2024-01-10"}},
            },
        },
        "2024-06-01T00:00:00Z",
    )

    assert record.name == "Smuggling"
    assert record.ecir_no == "E-1"
    assert record.assigned_officer == ("Rao", "Iyer")
    assert record.date_of_ecir == "2024-01-10"
    assert record.last_edited == "2024-05-30T00:00:00.000Z"


def test_map_summons_page_infers_status_and_splits_appearance() -> None:
    record = map_summons_page(
        {
            "id": "22222222-2222-4222-8222-222222222222",
            "properties": {
                "Name of Person": {"title": [{"plain_text": "R. Sharma"}]},
                "Case ": {"relation": [{"id": CASE_ID}]},
                "Summon issued": {"checkbox": True},
                "SummonServed": {"checkbox": True},
                "Statement Completed": {"checkbox": True},
                "Next Date Fixed": {"date": {"start": "2024-07-02T11:15:00.000+05:30"}},
                "Purpose of Summons": {"multi_select": [{"name": "Statement"}]},
            },
        },
        "2024-06-01T00:00:00Z",
    )

    assert record.case_id == CASE_ID
    assert record.status == "Statement Completed"
    assert record.appearance_date == "2024-07-02"
    assert record.appearance_time == "11:15"
    assert record.purpose == ("Statement",)
    assert record.previous_summon_id is None


def test_map_summons_page_without_case_is_pending_link() -> None:
    record = map_summons_page({"id": "x", "properties": {}}, "2024-06-01T00:00:00Z")

    assert record.case_id == PENDING_LINK
    assert record.person_name == "Unknown Name"
    assert record.status == "Draft"


def test_page_without_id_is_rejected() -> None:
    with pytest.raises(ValueError):
        map_case_page({"properties": {}}, "2024-06-01T00:00:00Z")
