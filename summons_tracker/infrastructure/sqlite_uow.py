from __future__ import annotations

import contextlib
import sqlite3
import uuid
from collections.abc import Iterator


@contextlib.contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[None]:
    """All-or-nothing unit of work; nested calls become SAVEPOINTs."""
    if connection.in_transaction:
        savepoint_name = f"sp_{uuid.uuid4().hex}"
        connection.execute(f"SAVEPOINT {savepoint_name}")
        try:
            yield
            connection.execute(f"RELEASE SAVEPOINT {savepoint_name}")
        except Exception:
            connection.execute(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
            connection.execute(f"RELEASE SAVEPOINT {savepoint_name}")
            raise
        return

    connection.execute("BEGIN")
    try:
        yield
        connection.commit()
    except Exception:
        connection.rollback()
        raise


def transaction_factory(connection: sqlite3.Connection):
    def _open() -> contextlib.AbstractContextManager[None]:
        return transaction(connection)

    return _open
