from __future__ import annotations

from typing import Any

import httpx

from summons_tracker.domain.remote_errors import (
    RemoteApiError,
    RemoteAuthError,
    RemoteConfigError,
    RemoteRateLimitError,
    RemoteTransportError,
)


def extract_error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text}
    return body if isinstance(body, dict) else {"message": str(body)}


def classify_api_error(status_code: int, code: str | None, message: str) -> Exception:
    detail = f"Notion API error {status_code}" + (f" ({code})" if code else "") + (f": {message}" if message else "")
    if status_code == 429 or code == "rate_limited":
        return RemoteRateLimitError("Notion rate limit reached. Wait a moment and retry.")
    if status_code == 401 or code == "unauthorized":
        return RemoteAuthError("Notion rejected the API key (401 unauthorized).")
    if status_code == 403 or code == "restricted_resource":
        return RemoteAuthError("The Notion integration has no access to this database or page (403).")
    return RemoteApiError(detail, status_code=status_code, code=code)


def read_retry_after(response: httpx.Response) -> float | None:
    raw_value = response.headers.get("Retry-After")
    if raw_value is None:
        return None
    try:
        return max(0.0, float(raw_value))
    except ValueError:
        return None


def map_response_error(response: httpx.Response) -> Exception:
    body = extract_error_body(response)
    code = body.get("code")
    error = classify_api_error(response.status_code, str(code) if code else None, str(body.get("message") or ""))
    if isinstance(error, RemoteRateLimitError):
        error.retry_after = read_retry_after(response)
    return error


def map_httpx_exception(ex: Exception) -> Exception:
    if isinstance(ex, (RemoteApiError, RemoteAuthError, RemoteConfigError, RemoteRateLimitError, RemoteTransportError)):
        return ex
    if isinstance(ex, httpx.HTTPStatusError):
        return map_response_error(ex.response)
    if isinstance(ex, httpx.TimeoutException):
        return RemoteTransportError(f"Notion request timed out: {ex}")
    if isinstance(ex, httpx.TransportError):
        return RemoteTransportError(f"Notion unreachable: {ex}")
    if isinstance(ex, httpx.HTTPError):
        return RemoteTransportError(f"Notion request failed: {ex}")
    return ex
