"""Recompute every stored summons status from its lifecycle flags."""

from __future__ import annotations

import sqlite3

from summons_tracker.domain.summons_status import LifecycleFlags, infer_status


def run(connection: sqlite3.Connection) -> None:
    cursor = connection.cursor()
    cursor.execute(
        """
        SELECT id, status, is_issued, is_served, requests_reschedule, statement_ongoing,
               statement_recorded, rescheduled_date, rescheduled_date_communicated
        FROM summons
        """
    )
    updates: list[tuple[str, str]] = []
    for row in cursor.fetchall():
        status = infer_status(LifecycleFlags.from_mapping(dict(row))).value
        if status != row["status"]:
            updates.append((status, row["id"]))
    if updates:
        cursor.executemany("UPDATE summons SET status = ? WHERE id = ?", updates)
