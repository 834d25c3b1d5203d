from __future__ import annotations

import enum
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///jsonmirror.db"
DEFAULT_DB_CONNECT_TIMEOUT = 30.0
DEFAULT_MODEL_VERSION = 1
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_HTTP_MAX_RETRIES = 3
DEFAULT_HTTP_BACKOFF_FACTOR = 0.5
DEFAULT_HTTP_BACKOFF_MAX = 8.0


class WriteOptions(enum.IntFlag):
    """Behaviour switches read once when a persister is constructed."""

    DEFAULT = 0
    # Keep one-to-many children that are missing from a rewritten collection.
    DISABLE_STALE_CHILD_CLEANUP = 0x0001
    # Don't warn about JSON keys that map to no declared field.
    DISABLE_UNMAPPED_KEY_WARNINGS = 0x0002

    def enabled(self, option: "WriteOptions") -> bool:
        return self & option == option


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    connect_timeout: float = DEFAULT_DB_CONNECT_TIMEOUT
    model_version: int = DEFAULT_MODEL_VERSION
    apply_schema: bool = False


@dataclass(frozen=True)
class HttpConfig:
    timeout: float = DEFAULT_HTTP_TIMEOUT
    max_retries: int = DEFAULT_HTTP_MAX_RETRIES
    backoff_factor: float = DEFAULT_HTTP_BACKOFF_FACTOR
    backoff_max: float = DEFAULT_HTTP_BACKOFF_MAX
