from __future__ import annotations

import logging
import uuid
from contextlib import AbstractContextManager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def set_correlation_id(correlation_id: str | None) -> Token[str | None]:
    return _CORRELATION_ID.set(correlation_id)


def reset_correlation_id(token: Token[str | None]) -> None:
    _CORRELATION_ID.reset(token)


class OperationContext(AbstractContextManager["OperationContext"]):
    """Binds a correlation id to one sync/push run and logs its boundaries.

    Nested contexts reuse the outer correlation id so that a ``push_one``
    triggered from inside ``sync_all`` is still traceable to the same run.
    """

    def __init__(self, operation_name: str, **fields: Any) -> None:
        self.operation_name = operation_name
        self.fields = fields
        self.correlation_id = get_correlation_id() or generate_correlation_id()
        self.elapsed_ms = 0.0
        self._token: Token[str | None] | None = None
        self._started = 0.0

    def __enter__(self) -> "OperationContext":
        self._token = set_correlation_id(self.correlation_id)
        self._started = perf_counter()
        log_event(logger, f"{self.operation_name}.started", dict(self.fields), self.correlation_id)
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> None:
        self.elapsed_ms = (perf_counter() - self._started) * 1000
        payload = {**self.fields, "elapsed_ms": round(self.elapsed_ms, 1), "failed": exc_type is not None}
        log_event(logger, f"{self.operation_name}.finished", payload, self.correlation_id)
        if self._token is not None:
            reset_correlation_id(self._token)
        return None


def log_event(logger: Any, event_name: str, payload: dict[str, Any], correlation_id: str) -> dict[str, Any]:
    event = {
        "event": event_name,
        "correlation_id": correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }
    logger.info(
        event_name,
        extra={
            "correlation_id": correlation_id,
            "extra": event,
        },
    )
    return event
