"""Application entry point for the hookrelay forwarder."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Iterable, Mapping, Optional, TextIO

from art import tprint

from hookrelay.adapters.event_source import parse_event_line
from hookrelay.adapters.failure_notifier import LoggingFailureNotifier
from hookrelay.adapters.json_config_store import JsonConfigStore
from hookrelay.adapters.sqlite_storage import SQLiteStorage
from hookrelay.adapters.webhook_client import WebhookClient
from hookrelay.core.config import config_bool
from hookrelay.core.dispatcher import Dispatcher
from hookrelay.core.ingestion import EventIngestor
from hookrelay.core.status import StatusRecorder
from hookrelay.core.worker_pool import DispatchWorkerPool

NAME = "HOOKRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


# Headers that describe the payload rather than authenticate the sender.
_PUBLIC_HEADERS = {"content-type", "accept", "user-agent"}
# Shorter values, such as a "1" flag header, would mask unrelated log text.
_MIN_SECRET_LENGTH = 4


class _MaskingFormatter(logging.Formatter):
    """Replaces webhook credentials with *** wherever they reach a log line."""

    def __init__(self, secrets: Iterable[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first, so a full "Bearer <token>" is masked before its bare token.
        self._secrets = sorted(set(secrets), key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _webhook_secrets(headers: Mapping[str, str], redact_config: Mapping) -> list[str]:
    if not config_bool(redact_config.get("enabled"), True):
        return []
    secrets = []
    for name, value in headers.items():
        if name.lower() in _PUBLIC_HEADERS:
            continue
        secrets.append(value.strip())
        _, _, token = value.strip().partition(" ")
        secrets.append(token.strip())
    return [secret for secret in secrets if len(secret) >= _MIN_SECRET_LENGTH]


def _configure_logging(config: dict, base_dir: str, webhook_headers: Mapping[str, str]) -> None:
    config = config or {}
    if not config_bool(config.get("enabled"), False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _MaskingFormatter(
        _webhook_secrets(webhook_headers, config.get("redact") or {}),
        fmt=fmt,
        datefmt=datefmt,
    )

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/hookrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(base_dir, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


async def _read_lines(stream: TextIO):
    # Reading in a thread keeps workers running while we wait on a live stream.
    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            return
        yield line


async def _ingest_stream(settings, storage: SQLiteStorage, stream: TextIO) -> tuple[int, int]:
    """Feed every event from the stream through the pipeline and wait for delivery."""

    rule_store = JsonConfigStore(settings.CONFIG_PATH)
    dispatcher = Dispatcher(
        rule_store=rule_store,
        delivery=WebhookClient(timeout_seconds=settings.RUNTIME.delivery_timeout_seconds),
        recorder=StatusRecorder(storage),
        failure_notifier=LoggingFailureNotifier(),
    )
    pool = DispatchWorkerPool(dispatcher, size=settings.RUNTIME.worker_pool_size)
    pool.start()
    ingestor = EventIngestor(rule_store, storage, pool, own_source_id=settings.OWN_SOURCE_ID)

    read = 0
    queued = 0
    try:
        line_number = 0
        async for line in _read_lines(stream):
            line_number += 1
            event = parse_event_line(line, line_number)
            if event is None:
                continue
            read += 1
            if await ingestor.ingest(event) is not None:
                queued += 1
    finally:
        await pool.close()
    return read, queued


def _ingest(settings, path: Optional[str]) -> None:
    _print_banner()
    logger = logging.getLogger(__name__)
    logger.info("Starting hookrelay")

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()

    if path and path != "-":
        with open(path, "r", encoding="utf-8") as handle:
            read, queued = asyncio.run(_ingest_stream(settings, storage, handle))
    else:
        read, queued = asyncio.run(_ingest_stream(settings, storage, sys.stdin))

    logger.info("Ingest complete: events=%s, queued=%s", read, queued)
    print(f"Events read: {read}, dispatched: {queued}")
    for status, total in sorted(storage.count_by_status().items()):
        print(f"  {status}: {total}")


def _status(settings, event_id: int) -> int:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    stored = storage.get_event(event_id)
    if stored is None:
        print(f"Event {event_id} not found")
        return 1
    print(stored.delivery_status or "pending")
    return 0


def _pending(settings, limit: int) -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    unresolved = storage.list_unresolved(limit)
    if not unresolved:
        print("No events awaiting a delivery status.")
        return
    for stored in unresolved:
        event = stored.event
        print(f"{stored.id} | {stored.received_at} | {event.source_name} ({event.source_id}) | {event.title}")


def _stats(settings) -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    counts = storage.count_by_status()
    if not counts:
        print("No events recorded.")
        return
    for status, total in sorted(counts.items()):
        print(f"{status}: {total}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="hookrelay")
    parser.add_argument("--config", help="Path to config.json (overrides HOOKRELAY_CONFIG)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the event database")
    ingest_parser = subparsers.add_parser("ingest", help="Read JSON-lines events and forward them")
    ingest_parser.add_argument("file", nargs="?", default="-", help="Event file, '-' for stdin")
    status_parser = subparsers.add_parser("status", help="Show the delivery status of one event")
    status_parser.add_argument("event_id", type=int)
    pending_parser = subparsers.add_parser(
        "pending",
        help="List events without a delivery status (for reconciliation after a crash)",
    )
    pending_parser.add_argument("--limit", type=int, default=100)
    subparsers.add_parser("stats", help="Show event counts per delivery status")

    args = parser.parse_args(argv)
    if args.config:
        os.environ["HOOKRELAY_CONFIG"] = args.config

    # Settings read config.json at import time, so import after --config is applied.
    from hookrelay import settings

    _configure_logging(
        settings.LOGGING,
        settings.CONFIG_DIR,
        JsonConfigStore(settings.CONFIG_PATH).webhook_headers(),
    )

    if args.command == "init-db":
        SQLiteStorage(settings.DB_PATH).init_db()
        print(f"Database ready at {settings.DB_PATH}")
        return 0
    if args.command == "ingest":
        _ingest(settings, args.file)
        return 0
    if args.command == "status":
        return _status(settings, args.event_id)
    if args.command == "pending":
        _pending(settings, args.limit)
        return 0
    _stats(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
