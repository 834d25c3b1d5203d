import pytest

from jsonmirror.config import Settings
from jsonmirror.models import DEFAULT_DATABASE_URL, WriteOptions

ENV_VARS = [
    "MIRROR_DATABASE_URL",
    "MIRROR_MODEL_VERSION",
    "MIRROR_APPLY_SCHEMA",
    "MIRROR_DISABLE_CLEANUP",
    "MIRROR_QUIET_UNMAPPED",
    "POSTGRES_HOST",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_PORT",
    "HTTP_TIMEOUT",
    "HTTP_MAX_RETRIES",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env(dotenv=False)

    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.model_version == 1
    assert settings.apply_schema is False
    assert settings.log_level == "INFO"
    assert settings.write_options() == WriteOptions.DEFAULT


def test_explicit_database_url_wins(monkeypatch):
    monkeypatch.setenv("MIRROR_DATABASE_URL", "sqlite:///other.db")
    monkeypatch.setenv("POSTGRES_HOST", "db")

    assert Settings.from_env(dotenv=False).database_url == "sqlite:///other.db"


def test_postgres_url_is_composed(monkeypatch):
    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_USER", "mirror")
    monkeypatch.setenv("POSTGRES_PASSWORD", "secret")
    monkeypatch.setenv("POSTGRES_DB", "mirrordb")

    settings = Settings.from_env(dotenv=False)

    assert settings.database_url == "postgresql+psycopg://mirror:secret@db:5432/mirrordb"


def test_flags_become_write_options(monkeypatch):
    monkeypatch.setenv("MIRROR_DISABLE_CLEANUP", "true")
    monkeypatch.setenv("MIRROR_QUIET_UNMAPPED", "1")

    options = Settings.from_env(dotenv=False).write_options()

    assert options.enabled(WriteOptions.DISABLE_STALE_CHILD_CLEANUP)
    assert options.enabled(WriteOptions.DISABLE_UNMAPPED_KEY_WARNINGS)


def test_malformed_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MIRROR_MODEL_VERSION", "two")
    monkeypatch.setenv("HTTP_TIMEOUT", "soon")
    monkeypatch.setenv("HTTP_MAX_RETRIES", "-4")

    settings = Settings.from_env(dotenv=False)

    assert settings.model_version == 1
    assert settings.http_timeout == 30.0
    assert settings.http_max_retries == 0


def test_derived_configs(monkeypatch):
    monkeypatch.setenv("MIRROR_MODEL_VERSION", "3")
    monkeypatch.setenv("MIRROR_APPLY_SCHEMA", "yes")

    settings = Settings.from_env(dotenv=False)

    assert settings.database_config().model_version == 3
    assert settings.database_config().apply_schema is True
    assert settings.http_config().max_retries == settings.http_max_retries
