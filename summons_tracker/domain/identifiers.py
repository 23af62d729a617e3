from __future__ import annotations

import re
import secrets
import time

_CANONICAL_ID = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}|[0-9a-f]{32})$",
    re.IGNORECASE,
)

PENDING_LINK = "Pending Link"


def is_canonical_id(value: str | None) -> bool:
    """True when ``value`` has the shape of an identifier assigned by the remote system.

    Both the dashed form and the 32-hex form found in page URLs are accepted.
    """
    if not value:
        return False
    return bool(_CANONICAL_ID.match(value.strip()))


def canonical_form(value: str) -> str:
    """Dashed lowercase form of a canonical id; any other value is returned unchanged."""
    if not is_canonical_id(value):
        return value
    compact = value.strip().replace("-", "").lower()
    return f"{compact[:8]}-{compact[8:12]}-{compact[12:16]}-{compact[16:20]}-{compact[20:]}"


def new_local_id(prefix: str, *, now_ms: int | None = None) -> str:
    """Placeholder id for a record the remote system has never seen, e.g. ``case-1700000000000-3fa1``."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{millis}-{secrets.token_hex(2)}"
