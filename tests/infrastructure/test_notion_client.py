from __future__ import annotations

import json

import httpx
import pytest

from summons_tracker.core.metrics import metrics_registry
from summons_tracker.core.observability import OperationContext
from summons_tracker.domain.models import RecordType
from summons_tracker.domain.remote_errors import (
    RemoteApiError,
    RemoteAuthError,
    RemoteConfigError,
    RemoteRateLimitError,
    RemoteTransportError,
)
from summons_tracker.infrastructure.notion_client import NOTION_VERSION, NotionClient, backoff_seconds

DATABASES = {RecordType.CASE: "cases-db", RecordType.SUMMONS: "summons-db"}
PAGE_ID = "aaaaaaaa-0000-4000-8000-000000000001"


def _client(handler, **kwargs) -> NotionClient:
    sleeps: list[float] = []
    client = NotionClient(
        "secret-key",
        DATABASES,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        **kwargs,
    )
    client.sleeps = sleeps  # type: ignore[attr-defined]
    return client


def test_empty_api_key_is_a_configuration_error() -> None:
    with pytest.raises(RemoteConfigError):
        NotionClient("", DATABASES)


def test_query_database_follows_cursor() -> None:
    seen_bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/databases/cases-db/query"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["Notion-Version"] == NOTION_VERSION
        body = json.loads(request.content)
        seen_bodies.append(body)
        if "start_cursor" not in body:
            return httpx.Response(200, json={"results": [{"id": "p1"}], "has_more": True, "next_cursor": "c2"})
        return httpx.Response(200, json={"results": [{"id": "p2"}], "has_more": False, "next_cursor": None})

    client = _client(handler, page_size=1)

    pages = client.query_database(RecordType.CASE)

    assert [page["id"] for page in pages] == ["p1", "p2"]
    assert seen_bodies[1]["start_cursor"] == "c2"
    assert seen_bodies[0]["page_size"] == 1
    assert client.request_count == 2


@pytest.mark.parametrize(
    ("status", "body"),
    [
        (404, {"code": "object_not_found", "message": "Could not find page"}),
        (400, {"code": "validation_error", "message": "path failed validation"}),
    ],
)
def test_try_update_page_reports_missing_page(status: int, body: dict) -> None:
    client = _client(lambda request: httpx.Response(status, json=body))

    outcome = client.try_update_page(PAGE_ID, {})

    assert outcome.not_found
    assert outcome.reason == body["code"]


def test_try_update_page_returns_updated_page() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"properties": {"Name": {"title": []}}}
        return httpx.Response(200, json={"id": PAGE_ID})

    outcome = _client(handler).try_update_page(PAGE_ID, {"Name": {"title": []}})

    assert not outcome.not_found
    assert outcome.page == {"id": PAGE_ID}


def test_other_api_errors_propagate() -> None:
    client = _client(lambda request: httpx.Response(409, json={"code": "conflict_error", "message": "conflict"}))

    with pytest.raises(RemoteApiError) as excinfo:
        client.try_update_page(PAGE_ID, {})

    assert excinfo.value.status_code == 409
    assert not excinfo.value.is_not_found


def test_property_validation_error_is_not_a_missing_page() -> None:
    body = {"code": "validation_error", "message": "Status is expected to be status."}
    client = _client(lambda request: httpx.Response(400, json=body))

    with pytest.raises(RemoteApiError) as excinfo:
        client.try_update_page(PAGE_ID, {"Status": {"select": {"name": "Open"}}})

    assert excinfo.value.status_code == 400
    assert not excinfo.value.is_not_found


def test_rate_limit_is_retried_with_retry_after() -> None:
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "2"}, json={"code": "rate_limited"}),
            httpx.Response(429, json={"code": "rate_limited"}),
            httpx.Response(200, json={"id": PAGE_ID}),
        ]
    )
    client = _client(lambda request: next(responses))

    page = client.archive_page(PAGE_ID)

    assert page == {"id": PAGE_ID}
    assert client.sleeps == [2.0, backoff_seconds(2)]  # type: ignore[attr-defined]


def test_persistent_rate_limit_gives_up() -> None:
    client = _client(lambda request: httpx.Response(429, json={"code": "rate_limited"}), max_retries=3)

    with pytest.raises(RemoteRateLimitError):
        client.archive_page(PAGE_ID)

    assert len(client.sleeps) == 2  # type: ignore[attr-defined]


def test_auth_errors_are_not_retried() -> None:
    client = _client(lambda request: httpx.Response(401, json={"code": "unauthorized"}))

    with pytest.raises(RemoteAuthError):
        client.query_database(RecordType.SUMMONS)

    assert client.request_count == 1


def test_timeouts_map_to_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(RemoteTransportError):
        _client(handler).query_database(RecordType.CASE)


def test_create_page_targets_database_and_sends_correlation_id() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        captured["correlation"] = request.headers.get("X-Correlation-ID")
        return httpx.Response(200, json={"id": PAGE_ID})

    with OperationContext("test.create") as operation:
        _client(handler).create_page(RecordType.SUMMONS, {"Name": {"title": []}})

    assert captured["body"]["parent"] == {"database_id": "summons-db"}
    assert captured["correlation"] == operation.correlation_id


def test_find_page_by_local_id_filters_on_tag_property() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["filter"] == {"property": "Local ID", "rich_text": {"equals": "case-1-abcd"}}
        return httpx.Response(200, json={"results": [{"id": PAGE_ID}], "has_more": False})

    assert _client(handler).find_page_by_local_id(RecordType.CASE, "case-1-abcd") == {"id": PAGE_ID}


def test_find_page_by_local_id_disabled_without_property() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _client(handler, local_id_property="").find_page_by_local_id(RecordType.CASE, "x") is None


def test_unconfigured_database_raises_config_error() -> None:
    client = NotionClient("secret", {RecordType.CASE: "cases-db"}, transport=httpx.MockTransport(lambda r: None))

    with pytest.raises(RemoteConfigError):
        client.query_database(RecordType.SUMMONS)


def test_backoff_is_capped() -> None:
    assert backoff_seconds(1) == 1.0
    assert backoff_seconds(3) == 4.0
    assert backoff_seconds(10) == 30.0


def test_remote_calls_are_timed() -> None:
    client = _client(lambda request: httpx.Response(200, json={"results": [], "has_more": False}))

    client.query_database(RecordType.CASE)

    assert metrics_registry.snapshot()["timings_ms"]["notion.query_database"]["count"] == 1
