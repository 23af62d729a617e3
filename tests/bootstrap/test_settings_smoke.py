from __future__ import annotations

from pathlib import Path

from summons_tracker.bootstrap.settings import DEFAULT_BATCH_SIZE, SyncSettings, resolve_log_dir


def test_from_env_reads_values_and_falls_back_on_bad_numbers() -> None:
    settings = SyncSettings.from_env(
        {
            "NOTION_API_KEY": " key ",
            "NOTION_CASES_DATABASE_ID": "cases",
            "NOTION_SUMMONS_DATABASE_ID": "summons",
            "SYNC_BATCH_SIZE": "zero",
            "NOTION_TIMEOUT_SECONDS": "12.5",
            "SUMMONS_DB_PATH": "/tmp/x.db",
        }
    )

    assert settings.notion_api_key == "key"
    assert settings.is_configured()
    assert settings.batch_size == DEFAULT_BATCH_SIZE
    assert settings.timeout_seconds == 12.5
    assert settings.resolved_db_path() == Path("/tmp/x.db")
    assert settings.local_id_property == "Local ID"


def test_missing_keys_are_listed_in_order() -> None:
    settings = SyncSettings.from_env({"NOTION_CASES_DATABASE_ID": "cases", "NOTION_LOCAL_ID_PROPERTY": ""})

    assert settings.missing_keys() == ["NOTION_API_KEY", "NOTION_SUMMONS_DATABASE_ID"]
    assert not settings.is_configured()
    assert settings.local_id_property == ""


def test_resolve_log_dir_prefers_settings(tmp_path: Path) -> None:
    settings = SyncSettings("", "", "", log_dir=tmp_path / "logs")

    assert resolve_log_dir(settings) == tmp_path / "logs"
