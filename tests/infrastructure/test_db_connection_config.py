from __future__ import annotations

from pathlib import Path

from summons_tracker.infrastructure.db import get_connection


def test_get_connection_creates_parent_and_applies_pragmas(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "summons.db"

    connection = get_connection(db_path, busy_timeout_ms=1500)
    try:
        assert db_path.parent.exists()
        assert connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert connection.execute("PRAGMA busy_timeout").fetchone()[0] == 1500
    finally:
        connection.close()
