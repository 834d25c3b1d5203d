import threading

import pytest
from sqlalchemy import inspect, select

from jsonmirror.db_connector import DatabaseSession
from jsonmirror.errors import StoreError
from jsonmirror.models import DatabaseConfig
from jsonmirror.schema_builder import SCHEMA_VERSION_TABLE

from sample_records import Group


def open_session(database_url, registry, version):
    return DatabaseSession(
        DatabaseConfig(url=database_url, connect_timeout=1.0, model_version=version),
        registry,
    )


def count_groups(session):
    table = session.metadata.tables["groups"]
    with session.engine.connect() as conn:
        return len(conn.execute(select(table)).all())


def test_ensure_schema_creates_tables_and_records_version(session):
    tables = set(inspect(session.engine).get_table_names())

    assert {
        "users",
        "groups",
        "user_groups",
        "user_tags",
        "pets",
        "notes",
        "samples",
        "invoices",
        "invoice_lines",
    } <= tables
    assert SCHEMA_VERSION_TABLE in tables
    assert session.stored_version() == 1


def test_same_version_keeps_rows(database_url, registry):
    first = open_session(database_url, registry, 1)
    first.ensure_schema()
    first.persister().write_object(Group, {"id": 1})
    first.dispose()

    second = open_session(database_url, registry, 1)
    assert second.ensure_schema() is False
    assert count_groups(second) == 1
    second.dispose()


def test_version_change_drops_and_recreates(database_url, registry):
    first = open_session(database_url, registry, 1)
    first.ensure_schema()
    first.persister().write_object(Group, {"id": 1})
    first.dispose()

    second = open_session(database_url, registry, 2)
    assert second.ensure_schema() is True
    assert count_groups(second) == 0
    assert second.stored_version() == 2
    second.dispose()


def test_recreate_schema_empties_tables(session):
    session.persister().write_object(Group, {"id": 1})

    session.recreate_schema()

    assert count_groups(session) == 0


def test_apply_schema_on_open(database_url, registry):
    session = DatabaseSession(
        DatabaseConfig(url=database_url, connect_timeout=1.0, apply_schema=True), registry
    )
    session.open()

    assert "groups" in inspect(session.engine).get_table_names()
    session.dispose()


def test_store_transactions_are_per_thread(session):
    store = session.store()
    seen = []

    store.begin()
    try:
        with pytest.raises(StoreError):
            store.begin()
        other = threading.Thread(target=lambda: seen.append(store.in_transaction))
        other.start()
        other.join()
        assert store.in_transaction
    finally:
        store.rollback()

    assert seen == [False]
    assert not store.in_transaction
