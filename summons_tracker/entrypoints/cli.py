from __future__ import annotations

import argparse
import faulthandler
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable

from summons_tracker.application.sync.reporting import build_sync_report, format_sync_summary
from summons_tracker.bootstrap.container import AppContainer, build_container
from summons_tracker.bootstrap.logging import configure_logging, install_exception_hook
from summons_tracker.bootstrap.settings import SyncSettings, resolve_log_dir
from summons_tracker.core.metrics import metrics_registry
from summons_tracker.core.observability import OperationContext
from summons_tracker.domain.models import RecordType
from summons_tracker.infrastructure.db import get_connection
from summons_tracker.infrastructure.migrations import MigrationRunner

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIGURATION = 2

logger = logging.getLogger(__name__)


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2, default=str) + "\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="summons-sync", description="Summons tracker Notion sync")
    parser.add_argument("--db", type=Path, help="SQLite database path (overrides SUMMONS_DB_PATH)")
    parser.add_argument("--log-dir", type=Path, help="Directory for JSONL logs (overrides SUMMONS_LOG_DIR)")
    parser.add_argument("--verbose", action="store_true", help="Echo warnings to stderr")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("sync", help="Pull cases then summonses from Notion")

    record_types = [item.value for item in RecordType]
    push = commands.add_parser("push", help="Push one local record to Notion")
    push.add_argument("record_type", choices=record_types)
    push.add_argument("record_id")

    archive = commands.add_parser("archive", help="Archive one Notion page")
    archive.add_argument("record_type", choices=record_types)
    archive.add_argument("record_id")

    migrate = commands.add_parser("migrate", help="Manage the local schema")
    migrate.add_argument("action", choices=("up", "down", "status"))
    migrate.add_argument("--steps", type=int, default=1, help="Migrations to roll back with 'down'")

    commands.add_parser("status", help="Show configuration and last pull per record type")
    return parser


def _settings_from_args(args: argparse.Namespace) -> SyncSettings:
    settings = SyncSettings.from_env()
    overrides: dict[str, Any] = {}
    if args.db is not None:
        overrides["db_path"] = args.db
    if args.log_dir is not None:
        overrides["log_dir"] = args.log_dir
    return replace(settings, **overrides) if overrides else settings


def _cmd_sync(container: AppContainer, args: argparse.Namespace) -> int:
    if not container.orchestrator.configured:
        _emit({"status": "FAILED", "error": f"Missing configuration: {', '.join(container.settings.missing_keys())}"})
        return EXIT_CONFIGURATION
    with OperationContext("cli.sync") as operation:
        result = container.orchestrator.sync_all()
    for line in format_sync_summary(result):
        logger.info(line)
    report = build_sync_report(result, correlation_id=operation.correlation_id)
    _emit(report)
    return EXIT_OK if result.success else EXIT_FAILED


def _cmd_push(container: AppContainer, args: argparse.Namespace) -> int:
    result = container.orchestrator.push_one(args.record_type, args.record_id)
    _emit(result.to_dict())
    if not container.orchestrator.configured:
        return EXIT_CONFIGURATION
    return EXIT_OK if result.success else EXIT_FAILED


def _cmd_archive(container: AppContainer, args: argparse.Namespace) -> int:
    result = container.orchestrator.archive_one(args.record_type, args.record_id)
    _emit(result.to_dict())
    if not container.orchestrator.configured:
        return EXIT_CONFIGURATION
    return EXIT_OK if result.success else EXIT_FAILED


def _cmd_status(container: AppContainer, args: argparse.Namespace) -> int:
    _emit(
        {
            "configured": container.orchestrator.configured,
            "missing_configuration": container.settings.missing_keys(),
            "db_path": str(container.settings.resolved_db_path()),
            "last_pull": {item.value: container.sync_state_repo.last_pull(item) for item in RecordType},
            "metrics": metrics_registry.snapshot(),
        }
    )
    return EXIT_OK


def _run_migrate(settings: SyncSettings, args: argparse.Namespace) -> int:
    connection = get_connection(settings.resolved_db_path())
    try:
        runner = MigrationRunner(connection)
        if args.action == "up":
            _emit({"applied": runner.apply_all()})
        elif args.action == "down":
            _emit({"rolled_back": runner.rollback(max(1, args.steps))})
        else:
            _emit({"migrations": runner.status()})
    finally:
        connection.close()
    return EXIT_OK


_COMMANDS: dict[str, Callable[[AppContainer, argparse.Namespace], int]] = {
    "sync": _cmd_sync,
    "push": _cmd_push,
    "archive": _cmd_archive,
    "status": _cmd_status,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = _settings_from_args(args)

    log_dir = resolve_log_dir(settings)
    configure_logging(log_dir, level=logging.DEBUG if args.verbose else logging.INFO, console=args.verbose)
    install_exception_hook(log_dir)
    faulthandler.enable()
    logger.info("Log dir: %s", log_dir)

    if args.command == "migrate":
        return _run_migrate(settings, args)

    container = build_container(settings)
    try:
        return _COMMANDS[args.command](container, args)
    finally:
        container.close()
