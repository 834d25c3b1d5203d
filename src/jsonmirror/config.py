"""Configuration loading for jsonmirror."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .models import (DEFAULT_DATABASE_URL, DEFAULT_DB_CONNECT_TIMEOUT,
                     DEFAULT_HTTP_BACKOFF_FACTOR, DEFAULT_HTTP_BACKOFF_MAX,
                     DEFAULT_HTTP_MAX_RETRIES, DEFAULT_HTTP_TIMEOUT,
                     DEFAULT_MODEL_VERSION, DatabaseConfig, HttpConfig,
                     WriteOptions)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    return default


def _database_url() -> str:
    url = os.getenv("MIRROR_DATABASE_URL")
    if url:
        return url
    if not os.getenv("POSTGRES_HOST"):
        return DEFAULT_DATABASE_URL
    # Compose a psycopg URL from the individual POSTGRES_* vars.
    db = os.getenv("POSTGRES_DB", "mirror")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_connect_timeout: float
    model_version: int
    apply_schema: bool
    disable_cleanup: bool
    quiet_unmapped: bool
    log_level: str
    http_timeout: float
    http_max_retries: int
    http_backoff_factor: float
    http_backoff_max: float

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            database_url=_database_url(),
            db_connect_timeout=_float(
                os.getenv("DATABASE_CONNECT_TIMEOUT"), DEFAULT_DB_CONNECT_TIMEOUT
            ),
            model_version=max(1, _int(os.getenv("MIRROR_MODEL_VERSION"), DEFAULT_MODEL_VERSION)),
            apply_schema=_bool(os.getenv("MIRROR_APPLY_SCHEMA"), False),
            disable_cleanup=_bool(os.getenv("MIRROR_DISABLE_CLEANUP"), False),
            quiet_unmapped=_bool(os.getenv("MIRROR_QUIET_UNMAPPED"), False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            http_timeout=_float(os.getenv("HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT),
            http_max_retries=max(0, _int(os.getenv("HTTP_MAX_RETRIES"), DEFAULT_HTTP_MAX_RETRIES)),
            http_backoff_factor=_float(
                os.getenv("HTTP_BACKOFF_FACTOR"), DEFAULT_HTTP_BACKOFF_FACTOR
            ),
            http_backoff_max=_float(os.getenv("HTTP_BACKOFF_MAX"), DEFAULT_HTTP_BACKOFF_MAX),
        )

    def write_options(self) -> WriteOptions:
        options = WriteOptions.DEFAULT
        if self.disable_cleanup:
            options |= WriteOptions.DISABLE_STALE_CHILD_CLEANUP
        if self.quiet_unmapped:
            options |= WriteOptions.DISABLE_UNMAPPED_KEY_WARNINGS
        return options

    def database_config(self) -> DatabaseConfig:
        return DatabaseConfig(
            url=self.database_url,
            connect_timeout=self.db_connect_timeout,
            model_version=self.model_version,
            apply_schema=self.apply_schema,
        )

    def http_config(self) -> HttpConfig:
        return HttpConfig(
            timeout=self.http_timeout,
            max_retries=self.http_max_retries,
            backoff_factor=self.http_backoff_factor,
            backoff_max=self.http_backoff_max,
        )
