#!/usr/bin/env python3
"""
Mail Journal CLI

Usage:
    python -m src.mail_journal [--config PATH] run
    python -m src.mail_journal [--config PATH] list [--format json|text]
    python -m src.mail_journal [--config PATH] show --date YYYY-MM-DD [--format json|text]
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import JournalConfig, load_or_create_config, resolve_config_path
from .exceptions import ConfigurationError, StorageError
from .logger import setup_logger
from .models import JournalEntry
from .repository import JournalRepository
from .service import MailJournalService

logger = logging.getLogger(__name__)


def format_entry_text(entry: JournalEntry) -> str:
    """エントリをテキスト形式で整形"""
    return f"[{entry.id}] {entry.date.isoformat()} | {entry.body.strip()}"


def format_entry_json(entry: JournalEntry) -> Dict[str, Any]:
    """エントリを辞書形式に変換"""
    return {
        "id": entry.id,
        "date": entry.date.isoformat(),
        "day": entry.day,
        "month": entry.month,
        "year": entry.year,
        "body": entry.body,
    }


def print_entries(entries: List[JournalEntry], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps([format_entry_json(e) for e in entries], ensure_ascii=False))
    elif not entries:
        print("No journal entries found.")
    else:
        for entry in entries:
            print(format_entry_text(entry))


def setup_signal_handlers(service: MailJournalService) -> None:
    """シグナルハンドラーを設定"""

    def signal_handler(sig, frame):
        logger.info("Received shutdown signal, stopping Mail Journal...")
        service.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def cmd_run(config: JournalConfig, repo: JournalRepository) -> int:
    """制御ループを起動"""
    service = MailJournalService(config, repo)
    setup_signal_handlers(service)
    try:
        service.run_forever()
    except StorageError as e:
        logger.critical(f"Journal store failure, shutting down: {e}", exc_info=True)
        return 1
    return 0


def cmd_list(repo: JournalRepository, output_format: str) -> int:
    """全エントリを表示"""
    print_entries(repo.list_entries(), output_format)
    return 0


def cmd_show(repo: JournalRepository, date_str: str, output_format: str) -> int:
    """指定日のエントリを表示"""
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        print(f"Error: invalid date: {date_str} (expected YYYY-MM-DD)", file=sys.stderr)
        return 1
    print_entries(repo.fetch_for_date(day.day, day.month, day.year), output_format)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mail-journal", description="Email-driven daily journal"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file path (default: $MAIL_JOURNAL_CONFIG or config/mail_journal.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the reminder/ingestion loop (default)")

    list_parser = subparsers.add_parser("list", help="List stored journal entries")
    list_parser.add_argument("--format", choices=["text", "json"], default="text")

    show_parser = subparsers.add_parser("show", help="Show the entry for one date")
    show_parser.add_argument("--date", required=True, help="Date in YYYY-MM-DD")
    show_parser.add_argument("--format", choices=["text", "json"], default="text")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント"""
    args = build_parser().parse_args(argv)
    command = args.command or "run"
    config_path = resolve_config_path(args.config)

    try:
        config = load_or_create_config(config_path)
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 1

    if config is None:
        print(
            f"No config file was found, so a default one was created at {config_path}. "
            "Please edit it and run Mail Journal again."
        )
        return 0

    if command == "run":
        setup_logger(config.log.level, config.log.file)

    try:
        repo = JournalRepository(config.db_filename)
    except StorageError as e:
        logger.critical(f"Failed to initialize journal store: {e}")
        return 1

    if command == "list":
        return cmd_list(repo, args.format)
    if command == "show":
        return cmd_show(repo, args.date, args.format)
    return cmd_run(config, repo)


if __name__ == "__main__":
    raise SystemExit(main())
