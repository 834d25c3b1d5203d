import pytest
from sqlalchemy import select

from jsonmirror.db_connector import DatabaseSession
from jsonmirror.models import DatabaseConfig
from jsonmirror.registry import ModelRegistry

import sample_records


@pytest.fixture
def registry():
    return ModelRegistry(sample_records.ALL)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'mirror.db'}"


@pytest.fixture
def session(database_url, registry):
    session = DatabaseSession(DatabaseConfig(url=database_url, connect_timeout=1.0), registry)
    session.ensure_schema()
    yield session
    session.dispose()


@pytest.fixture
def persister(session):
    return session.persister()


@pytest.fixture
def rows(session):
    def fetch(table_name, order_by="id"):
        table = session.metadata.tables[table_name]
        with session.engine.connect() as conn:
            result = conn.execute(select(table).order_by(table.c[order_by]))
            return [dict(row._mapping) for row in result]

    return fetch
