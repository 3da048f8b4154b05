"""Static process settings for hookrelay.

Rules, endpoints and switches live in config.json and are re-read per event by
the config store. This module only holds what is fixed for the lifetime of the
process: file locations, the worker pool size, timeouts and logging.
"""

import json
import os

from dotenv import load_dotenv

from hookrelay.core.config import (
    DEFAULT_DELIVERY_TIMEOUT_SECONDS,
    DEFAULT_WORKER_POOL_SIZE,
    RuntimeConfig,
)

# .env lets users point at a config/database without touching the shell profile.
load_dotenv()

CONFIG_PATH = os.path.abspath(os.getenv("HOOKRELAY_CONFIG", "config.json"))
CONFIG_DIR = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(CONFIG_DIR, path)


_CONFIG = _load_json_config()

# Runtime knobs; relative paths are resolved next to config.json.
_runtime = _CONFIG.get("runtime", {})
RUNTIME = RuntimeConfig(
    worker_pool_size=int(_runtime.get("worker_pool_size", DEFAULT_WORKER_POOL_SIZE)),
    delivery_timeout_seconds=float(
        _runtime.get("delivery_timeout_seconds", DEFAULT_DELIVERY_TIMEOUT_SECONDS)
    ),
)

# Where to store the SQLite database. HOOKRELAY_DB wins over config.json.
DB_PATH = os.getenv("HOOKRELAY_DB") or _resolve(_runtime.get("db_path", "hookrelay.db"))

# Source id of this process itself, so our own alerts are never re-ingested.
OWN_SOURCE_ID = _runtime.get("own_source_id")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
