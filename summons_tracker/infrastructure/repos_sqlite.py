from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, fields
from typing import Any, Callable, Iterable, TypeVar

from summons_tracker.core.errors import IdentifierMigrationError, PersistenceError
from summons_tracker.domain.models import (
    CASE_FLAG_FIELDS,
    CASE_LIST_FIELDS,
    SUMMONS_FLAG_FIELDS,
    SUMMONS_LIST_FIELDS,
    ActivityLogEntry,
    CaseRecord,
    RecordType,
    SummonsRecord,
)
from summons_tracker.domain.ports import ActivityLogRepository, CaseRepository, SummonsRepository, SyncStateRepository
from summons_tracker.infrastructure.sqlite_uow import transaction

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _list_to_db(values: Iterable[str] | None) -> str:
    return json.dumps(list(values or ()), ensure_ascii=False)


def _list_from_db(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        values = json.loads(raw)
    except ValueError:
        logger.warning("Discarding malformed list column value %r", raw)
        return ()
    if not isinstance(values, list):
        return ()
    return tuple(str(value) for value in values)


def _write(context: str, operation: Callable[[], _T]) -> _T:
    try:
        return operation()
    except sqlite3.Error as exc:
        raise PersistenceError(f"{context}: {exc}") from exc


class _RecordTable:
    """Row <-> record conversion shared by the case and summons tables.

    Flags are stored as 0/1 and sets as JSON text; both are converted back
    to ``bool`` and ``tuple`` on read.
    """

    table: str
    record_cls: type
    flag_fields: tuple[str, ...]
    list_fields: tuple[str, ...]

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._columns = tuple(item.name for item in fields(self.record_cls))

    def _to_row(self, values: dict[str, Any]) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for name, value in values.items():
            if name in self.flag_fields:
                value = 1 if value else 0
            elif name in self.list_fields:
                value = _list_to_db(value)
            row[name] = value
        return row

    def _from_row(self, row: sqlite3.Row) -> Any:
        values: dict[str, Any] = {}
        for name in self._columns:
            value = row[name]
            if name in self.flag_fields:
                value = bool(value)
            elif name in self.list_fields:
                value = _list_from_db(value)
            values[name] = value
        return self.record_cls(**values)

    def get(self, record_id: str) -> Any:
        cursor = self._connection.execute(f"SELECT * FROM {self.table} WHERE id = ?", (record_id,))
        row = cursor.fetchone()
        return self._from_row(row) if row is not None else None

    def _select(self, where: str = "", params: tuple[Any, ...] = ()) -> list[Any]:
        sql = f"SELECT * FROM {self.table}"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY created_at, id"
        return [self._from_row(row) for row in self._connection.execute(sql, params).fetchall()]

    def list_all(self) -> list[Any]:
        return self._select()

    def _insert_sql(self) -> str:
        columns = ", ".join(self._columns)
        placeholders = ", ".join(f":{name}" for name in self._columns)
        return f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})"

    def insert(self, record: Any) -> None:
        row = self._to_row(asdict(record))

        def _run() -> None:
            with transaction(self._connection):
                self._connection.execute(self._insert_sql(), row)

        _write(f"insert {self.table} {record.id}", _run)

    def update_fields(self, record_id: str, values: dict[str, Any]) -> None:
        if not values:
            return
        invalid = (set(values) - set(self._columns)) | ({"id"} & set(values))
        if invalid:
            raise PersistenceError(f"Cannot update {self.table} columns: {sorted(invalid)}")
        row = self._to_row(values)
        assignments = ", ".join(f"{name} = :{name}" for name in row)

        def _run() -> None:
            with transaction(self._connection):
                self._connection.execute(
                    f"UPDATE {self.table} SET {assignments} WHERE id = :__id",
                    {**row, "__id": record_id},
                )

        _write(f"update {self.table} {record_id}", _run)

    def mark_synced(self, record_id: str, synced_at: str) -> None:
        self.update_fields(record_id, {"synced_at": synced_at})

    def _delete_rows(self, record_id: str) -> None:
        self._connection.execute(f"DELETE FROM {self.table} WHERE id = ?", (record_id,))

    def delete(self, record_id: str) -> None:
        def _run() -> None:
            with transaction(self._connection):
                self._delete_rows(record_id)

        _write(f"delete {self.table} {record_id}", _run)

    def _rewrite_dependents(self, old_id: str, new_id: str) -> None:
        raise NotImplementedError

    def migrate_identifier(self, old_id: str, new_id: str, synced_at: str) -> None:
        """Move a row to ``new_id`` and repoint every foreign key, atomically."""
        record_type = RecordType.CASE.value if self.record_cls is CaseRecord else RecordType.SUMMONS.value
        try:
            with transaction(self._connection):
                row = self._connection.execute(f"SELECT * FROM {self.table} WHERE id = ?", (old_id,)).fetchone()
                if row is None:
                    raise IdentifierMigrationError(record_type, old_id, new_id, "local record vanished")
                copied = {name: row[name] for name in self._columns}
                copied.update(id=new_id, synced_at=synced_at)
                # A pull may already have inserted the remote copy; the local row wins.
                self._connection.execute(f"DELETE FROM {self.table} WHERE id = ?", (new_id,))
                self._connection.execute(self._insert_sql(), copied)
                self._rewrite_dependents(old_id, new_id)
                self._connection.execute(f"DELETE FROM {self.table} WHERE id = ?", (old_id,))
        except sqlite3.Error as exc:
            raise IdentifierMigrationError(record_type, old_id, new_id, str(exc)) from exc


class CaseRepositorySQLite(_RecordTable, CaseRepository):
    table = "cases"
    record_cls = CaseRecord
    flag_fields = CASE_FLAG_FIELDS
    list_fields = CASE_LIST_FIELDS

    def _rewrite_dependents(self, old_id: str, new_id: str) -> None:
        self._connection.execute("UPDATE summons SET case_id = ? WHERE case_id = ?", (new_id, old_id))


class SummonsRepositorySQLite(_RecordTable, SummonsRepository):
    table = "summons"
    record_cls = SummonsRecord
    flag_fields = SUMMONS_FLAG_FIELDS
    list_fields = SUMMONS_LIST_FIELDS

    def list_by_case(self, case_id: str) -> list[SummonsRecord]:
        return self._select("case_id = ?", (case_id,))

    def _delete_rows(self, record_id: str) -> None:
        self._connection.execute("DELETE FROM activity_logs WHERE summons_id = ?", (record_id,))
        self._connection.execute("DELETE FROM summons WHERE id = ?", (record_id,))

    def _rewrite_dependents(self, old_id: str, new_id: str) -> None:
        self._connection.execute("UPDATE activity_logs SET summons_id = ? WHERE summons_id = ?", (new_id, old_id))
        self._connection.execute(
            "UPDATE summons SET previous_summon_id = ? WHERE previous_summon_id = ?",
            (new_id, old_id),
        )


class ActivityLogRepositorySQLite(ActivityLogRepository):
    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def add(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        def _run() -> int:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO activity_logs (
                        summons_id, user_id, action, field_name, old_value, new_value, description, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.summons_id,
                        entry.user_id,
                        entry.action,
                        entry.field_name,
                        entry.old_value,
                        entry.new_value,
                        entry.description,
                        entry.created_at,
                    ),
                )
                return int(cursor.lastrowid)

        new_id = _write(f"insert activity_logs {entry.summons_id}", _run)
        return ActivityLogEntry(**{**asdict(entry), "id": new_id})

    def list_for_summons(self, summons_id: str) -> list[ActivityLogEntry]:
        rows = self._connection.execute(
            """
            SELECT id, summons_id, user_id, action, field_name, old_value, new_value, description, created_at
            FROM activity_logs
            WHERE summons_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (summons_id,),
        ).fetchall()
        return [
            ActivityLogEntry(
                id=row["id"],
                summons_id=row["summons_id"],
                action=row["action"],
                description=row["description"],
                created_at=row["created_at"],
                user_id=row["user_id"],
                field_name=row["field_name"],
                old_value=row["old_value"],
                new_value=row["new_value"],
            )
            for row in rows
        ]


class SyncStateRepositorySQLite(SyncStateRepository):
    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def record_pull(self, record_type: RecordType, pulled_at: str, result_summary: str) -> None:
        def _run() -> None:
            with transaction(self._connection):
                self._connection.execute(
                    """
                    INSERT INTO sync_state (record_type, last_pull_at, last_result)
                    VALUES (?, ?, ?)
                    ON CONFLICT(record_type) DO UPDATE SET
                        last_pull_at = excluded.last_pull_at,
                        last_result = excluded.last_result
                    """,
                    (RecordType(record_type).value, pulled_at, result_summary),
                )

        _write("record sync_state", _run)

    def last_pull(self, record_type: RecordType) -> dict[str, Any] | None:
        row = self._connection.execute(
            "SELECT record_type, last_pull_at, last_result FROM sync_state WHERE record_type = ?",
            (RecordType(record_type).value,),
        ).fetchone()
        if row is None:
            return None
        try:
            last_result = json.loads(row["last_result"])
        except ValueError:
            last_result = {}
        return {"record_type": row["record_type"], "last_pull_at": row["last_pull_at"], "last_result": last_result}
