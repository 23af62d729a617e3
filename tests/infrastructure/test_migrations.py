from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from summons_tracker.infrastructure.migrations import MigrationRunner, default_migrations_dir, run_migrations


@pytest.fixture
def raw_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def test_apply_all_creates_schema_once(raw_connection: sqlite3.Connection) -> None:
    applied = run_migrations(raw_connection)

    assert applied == [1, 2]
    assert {"cases", "summons", "activity_logs", "sync_state", "schema_migrations"} <= _tables(raw_connection)
    assert run_migrations(raw_connection) == []
    assert raw_connection.execute("PRAGMA user_version").fetchone()[0] == 2


def test_status_lists_every_migration(raw_connection: sqlite3.Connection) -> None:
    runner = MigrationRunner(raw_connection)
    assert [item["applied"] for item in runner.status()] == [False, False]

    runner.apply_all()

    assert [(item["version"], item["applied"]) for item in runner.status()] == [(1, True), (2, True)]


def test_rollback_reverts_latest_versions(raw_connection: sqlite3.Connection) -> None:
    runner = MigrationRunner(raw_connection)
    runner.apply_all()

    assert runner.rollback(2) == [2, 1]
    assert "summons" not in _tables(raw_connection)
    assert raw_connection.execute("PRAGMA user_version").fetchone()[0] == 0


def test_status_backfill_hook_recomputes_stored_status(raw_connection: sqlite3.Connection, tmp_path: Path) -> None:
    source = default_migrations_dir()
    for name in ("001_initial_schema.up.sql", "001_initial_schema.down.sql"):
        (tmp_path / name).write_text((source / name).read_text(encoding="utf-8"), encoding="utf-8")
    MigrationRunner(raw_connection, tmp_path).apply_all()
    raw_connection.execute(
        "INSERT INTO summons (id, case_id, person_name, status, is_issued, is_served) "
        "VALUES ('s1', 'c1', 'P', '', 1, 1)"
    )
    raw_connection.commit()
    for name in ("002_status_backfill.up.sql", "002_status_backfill.down.sql", "002_status_backfill.up.py"):
        (tmp_path / name).write_text((source / name).read_text(encoding="utf-8"), encoding="utf-8")

    assert MigrationRunner(raw_connection, tmp_path).apply_all() == [2]

    status = raw_connection.execute("SELECT status FROM summons WHERE id = 's1'").fetchone()[0]
    assert status == "Awaiting Appearance"


def test_missing_down_file_is_rejected(raw_connection: sqlite3.Connection, tmp_path: Path) -> None:
    (tmp_path / "001_only_up.up.sql").write_text("SELECT 1;", encoding="utf-8")

    with pytest.raises(FileNotFoundError):
        MigrationRunner(raw_connection, tmp_path)
