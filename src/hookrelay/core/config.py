"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_WORKER_POOL_SIZE = 4
DEFAULT_DELIVERY_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class RuntimeConfig:
    """Process-level pipeline settings."""

    worker_pool_size: int = DEFAULT_WORKER_POOL_SIZE
    delivery_timeout_seconds: float = DEFAULT_DELIVERY_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.worker_pool_size < 1:
            raise ValueError("worker_pool_size must be at least 1")
        if self.delivery_timeout_seconds <= 0:
            raise ValueError("delivery_timeout_seconds must be positive")


def config_bool(value: Any, default: bool) -> bool:
    """Read a JSON flag. "true"/"false" strings count; anything else falls back."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return default
