from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, TypeVar

import httpx

from summons_tracker.core.metrics import measure_time
from summons_tracker.core.observability import get_correlation_id
from summons_tracker.domain.models import RecordType
from summons_tracker.domain.ports import RemoteRecordsPort
from summons_tracker.domain.remote_errors import RemoteApiError, RemoteConfigError, RemoteRateLimitError
from summons_tracker.domain.sync_models import RemoteUpdateResult
from summons_tracker.infrastructure.notion_errors import map_httpx_exception, map_response_error

logger = logging.getLogger(__name__)

NOTION_BASE_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
DEFAULT_PAGE_SIZE = 100
_MAX_RETRIES = 5
_BASE_BACKOFF_SECONDS = 1.0
_MAX_BACKOFF_SECONDS = 30.0

T = TypeVar("T")


def backoff_seconds(attempt: int, base_seconds: float = _BASE_BACKOFF_SECONDS) -> float:
    return min(_MAX_BACKOFF_SECONDS, base_seconds * (2 ** (attempt - 1)))


class NotionClient(RemoteRecordsPort):
    """Remote records adapter over the Notion REST API.

    Only rate limits are retried here; transport, auth and other API errors
    surface immediately to the sync engine.
    """

    def __init__(
        self,
        api_key: str,
        database_ids: Mapping[RecordType, str],
        *,
        local_id_property: str = "Local ID",
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = _MAX_RETRIES,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if not api_key:
            raise RemoteConfigError("NOTION_API_KEY is not configured.")
        self._database_ids = dict(database_ids)
        self._local_id_property = local_id_property
        self._sleep = sleep
        self._max_retries = max(1, max_retries)
        self._page_size = page_size
        self._client = httpx.Client(
            base_url=NOTION_BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )
        self.request_count = 0

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NotionClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @measure_time("notion.query_database")
    def query_database(self, record_type: RecordType, filter: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Every page of the database, following ``next_cursor`` until ``has_more`` is false."""
        database_id = self._database_id(record_type)
        results: list[dict[str, Any]] = []
        start_cursor: str | None = None
        while True:
            body: dict[str, Any] = {"page_size": self._page_size}
            if filter:
                body["filter"] = filter
            if start_cursor:
                body["start_cursor"] = start_cursor
            data = self._request("POST", f"/databases/{database_id}/query", body)
            results.extend(data.get("results", []))
            start_cursor = data.get("next_cursor")
            if not data.get("has_more") or not start_cursor:
                break
        logger.info("Fetched %s %s pages from Notion", len(results), RecordType(record_type).value)
        return results

    @measure_time("notion.update_page")
    def try_update_page(self, page_id: str, properties: dict[str, Any]) -> RemoteUpdateResult:
        try:
            page = self._request("PATCH", f"/pages/{page_id}", {"properties": properties})
        except RemoteApiError as exc:
            if exc.is_not_found:
                return RemoteUpdateResult.missing(exc.code or str(exc.status_code))
            raise
        return RemoteUpdateResult.updated(page)

    @measure_time("notion.create_page")
    def create_page(self, record_type: RecordType, properties: dict[str, Any]) -> dict[str, Any]:
        body = {"parent": {"database_id": self._database_id(record_type)}, "properties": properties}
        return self._request("POST", "/pages", body)

    @measure_time("notion.archive_page")
    def archive_page(self, page_id: str) -> dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", {"archived": True})

    def find_page_by_local_id(self, record_type: RecordType, local_id: str) -> dict[str, Any] | None:
        if not self._local_id_property:
            return None
        data = self._request(
            "POST",
            f"/databases/{self._database_id(record_type)}/query",
            {
                "page_size": 1,
                "filter": {"property": self._local_id_property, "rich_text": {"equals": local_id}},
            },
        )
        results = data.get("results") or []
        return results[0] if results else None

    def _database_id(self, record_type: RecordType) -> str:
        database_id = self._database_ids.get(RecordType(record_type))
        if not database_id:
            raise RemoteConfigError(f"No Notion database configured for {RecordType(record_type).value}.")
        return database_id

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._with_rate_limit_retry(f"{method} {path}", lambda: self._send(method, path, body))

    def _send(self, method: str, path: str, body: dict[str, Any] | None) -> dict[str, Any]:
        headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        try:
            response = self._client.request(method, path, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise map_httpx_exception(exc) from exc
        self.request_count += 1
        if response.is_error:
            raise map_response_error(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteApiError(
                f"Notion returned a non-JSON body for {method} {path}",
                status_code=response.status_code,
            ) from exc
        return payload if isinstance(payload, dict) else {}

    def _with_rate_limit_retry(self, operation_name: str, operation: Callable[[], T]) -> T:
        for attempt in range(1, self._max_retries + 1):
            try:
                return operation()
            except RemoteRateLimitError as exc:
                if attempt >= self._max_retries:
                    logger.error("Persistent Notion rate limit on %s after %s attempts.", operation_name, attempt)
                    raise
                delay = exc.retry_after if exc.retry_after is not None else backoff_seconds(attempt)
                logger.warning(
                    "Notion rate limit (%s). attempt=%s/%s backoff=%.3fs",
                    operation_name,
                    attempt,
                    self._max_retries,
                    delay,
                )
                self._sleep(delay)
        raise RemoteRateLimitError(f"Notion rate limit on {operation_name}")
