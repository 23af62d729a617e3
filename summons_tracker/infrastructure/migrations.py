from __future__ import annotations

import hashlib
import importlib.util
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Callable

from summons_tracker.bootstrap.settings import project_root

MigrationHook = Callable[[sqlite3.Connection], None]

logger = logging.getLogger(__name__)


def default_migrations_dir() -> Path:
    return project_root() / "migrations"


@dataclass(frozen=True)
class MigrationDefinition:
    version: int
    name: str
    up_sql: Path
    down_sql: Path
    up_hook: Path | None = None
    down_hook: Path | None = None


class MigrationRunner:
    """Applies ``NNN_name.up.sql`` files in order, each with an optional ``.up.py`` hook."""

    def __init__(self, connection: sqlite3.Connection, migrations_dir: Path | None = None) -> None:
        self.connection = connection
        self.connection.row_factory = sqlite3.Row
        self.migrations_dir = migrations_dir or default_migrations_dir()
        self.migrations = self._discover_migrations()

    def apply_all(self) -> list[int]:
        self._ensure_history_table()
        applied_versions = self._applied_versions()
        applied: list[int] = []
        for migration in self.migrations:
            if migration.version in applied_versions:
                continue
            self._apply_migration(migration)
            applied.append(migration.version)
            logger.info("Applied migration %04d %s", migration.version, migration.name)
        return applied

    def rollback(self, steps: int = 1) -> list[int]:
        self._ensure_history_table()
        cursor = self.connection.cursor()
        cursor.execute("SELECT version FROM schema_migrations ORDER BY version DESC LIMIT ?", (steps,))
        versions_to_rollback = [row["version"] for row in cursor.fetchall()]
        version_map = {migration.version: migration for migration in self.migrations}
        rolled_back: list[int] = []
        for version in versions_to_rollback:
            migration = version_map[version]
            self._rollback_migration(migration)
            rolled_back.append(version)
            logger.info("Rolled back migration %04d %s", migration.version, migration.name)
        return rolled_back

    def status(self) -> list[dict[str, object]]:
        self._ensure_history_table()
        applied_versions = self._applied_versions()
        return [
            {
                "version": migration.version,
                "name": migration.name,
                "applied": migration.version in applied_versions,
            }
            for migration in self.migrations
        ]

    def _ensure_history_table(self) -> None:
        cursor = self.connection.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                checksum TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
            """
        )
        self.connection.commit()

    def _applied_versions(self) -> set[int]:
        cursor = self.connection.cursor()
        cursor.execute("SELECT version FROM schema_migrations")
        return {row["version"] for row in cursor.fetchall()}

    def _apply_migration(self, migration: MigrationDefinition) -> None:
        sql_script = migration.up_sql.read_text(encoding="utf-8")
        checksum = hashlib.sha256(sql_script.encode("utf-8")).hexdigest()
        with self.connection:
            if sql_script.strip():
                self.connection.executescript(sql_script)
            if migration.up_hook is not None:
                hook = self._load_hook(migration.up_hook, "run")
                hook(self.connection)
            self.connection.execute(
                """
                INSERT INTO schema_migrations (version, name, checksum, applied_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    migration.version,
                    migration.name,
                    checksum,
                    datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                ),
            )
            self.connection.execute(f"PRAGMA user_version = {migration.version}")

    def _rollback_migration(self, migration: MigrationDefinition) -> None:
        sql_script = migration.down_sql.read_text(encoding="utf-8")
        with self.connection:
            if migration.down_hook is not None:
                hook = self._load_hook(migration.down_hook, "run")
                hook(self.connection)
            if sql_script.strip():
                self.connection.executescript(sql_script)
            self.connection.execute("DELETE FROM schema_migrations WHERE version = ?", (migration.version,))
            previous = self.connection.execute(
                "SELECT COALESCE(MAX(version), 0) AS version FROM schema_migrations"
            ).fetchone()["version"]
            self.connection.execute(f"PRAGMA user_version = {previous}")

    def _discover_migrations(self) -> list[MigrationDefinition]:
        definitions: list[MigrationDefinition] = []
        for up_file in sorted(self.migrations_dir.glob("*.up.sql")):
            stem = up_file.name[: -len(".up.sql")]
            version_text, name = stem.split("_", maxsplit=1)
            down_file = self.migrations_dir / f"{stem}.down.sql"
            if not down_file.exists():
                raise FileNotFoundError(f"Missing down migration for {up_file.name}: {down_file}")
            up_hook = self.migrations_dir / f"{stem}.up.py"
            down_hook = self.migrations_dir / f"{stem}.down.py"
            definitions.append(
                MigrationDefinition(
                    version=int(version_text),
                    name=name,
                    up_sql=up_file,
                    down_sql=down_file,
                    up_hook=up_hook if up_hook.exists() else None,
                    down_hook=down_hook if down_hook.exists() else None,
                )
            )
        return definitions

    def _load_hook(self, file_path: Path, function_name: str) -> MigrationHook:
        spec = importlib.util.spec_from_file_location(f"migration_hook_{file_path.stem.replace('.', '_')}", file_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import migration hook: {file_path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        if not isinstance(module, ModuleType) or not hasattr(module, function_name):
            raise AttributeError(f"Hook {file_path} must define {function_name}(connection)")
        return getattr(module, function_name)


def run_migrations(connection: sqlite3.Connection, migrations_dir: Path | None = None) -> list[int]:
    return MigrationRunner(connection, migrations_dir).apply_all()
