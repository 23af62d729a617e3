from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_BATCH_SIZE = 200
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_LOCAL_ID_PROPERTY = "Local ID"
DB_FILENAME = "summons.db"


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _safe_int(raw_value: str | None, default: int) -> int:
    if raw_value is None:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


def _safe_float(raw_value: str | None, default: float) -> float:
    if raw_value is None:
        return default
    try:
        value = float(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class SyncSettings:
    notion_api_key: str
    cases_database_id: str
    summons_database_id: str
    local_id_property: str = DEFAULT_LOCAL_ID_PROPERTY
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    batch_size: int = DEFAULT_BATCH_SIZE
    db_path: Path | None = None
    log_dir: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SyncSettings":
        env = os.environ if environ is None else environ
        db_path = env.get("SUMMONS_DB_PATH", "").strip()
        log_dir = env.get("SUMMONS_LOG_DIR", "").strip()
        return cls(
            notion_api_key=env.get("NOTION_API_KEY", "").strip(),
            cases_database_id=env.get("NOTION_CASES_DATABASE_ID", "").strip(),
            summons_database_id=env.get("NOTION_SUMMONS_DATABASE_ID", "").strip(),
            # An explicitly empty value disables creation tagging.
            local_id_property=env.get("NOTION_LOCAL_ID_PROPERTY", DEFAULT_LOCAL_ID_PROPERTY).strip(),
            timeout_seconds=_safe_float(env.get("NOTION_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS),
            batch_size=_safe_int(env.get("SYNC_BATCH_SIZE"), DEFAULT_BATCH_SIZE),
            db_path=Path(db_path) if db_path else None,
            log_dir=Path(log_dir) if log_dir else None,
        )

    def is_configured(self) -> bool:
        return bool(self.notion_api_key and self.cases_database_id and self.summons_database_id)

    def missing_keys(self) -> list[str]:
        missing: list[str] = []
        if not self.notion_api_key:
            missing.append("NOTION_API_KEY")
        if not self.cases_database_id:
            missing.append("NOTION_CASES_DATABASE_ID")
        if not self.summons_database_id:
            missing.append("NOTION_SUMMONS_DATABASE_ID")
        return missing

    def resolved_db_path(self) -> Path:
        return self.db_path or project_root() / "data" / DB_FILENAME


def resolve_log_dir(settings: SyncSettings | None = None) -> Path:
    candidates: list[Path] = []
    if settings is not None and settings.log_dir is not None:
        candidates.append(settings.log_dir)
    env_dir = os.environ.get("SUMMONS_LOG_DIR")
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append(project_root() / "logs")
    candidates.append(Path(tempfile.gettempdir()) / "SummonsTracker" / "logs")

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            test_file = candidate / "_write_test.tmp"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink(missing_ok=True)
            return candidate
        except OSError:
            continue

    fallback = project_root()
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback
