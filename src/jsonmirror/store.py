"""Row-level store primitives used by the persister."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Protocol

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.engine import Connection, Engine, Transaction
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.sql import ColumnElement

from .errors import StoreError

LOGGER = logging.getLogger("jsonmirror.store")


class RelationalStore(Protocol):
    """Transactional row operations against named tables."""

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def column(self, table: str, name: str) -> ColumnElement: ...

    def insert(self, table: str, values: Mapping[str, Any]) -> Any: ...

    def query_identity(self, table: str, column: str, value: Any) -> Optional[Any]: ...

    def update(self, table: str, values: Mapping[str, Any], *criteria: ColumnElement) -> int: ...

    def delete(self, table: str, *criteria: ColumnElement) -> int: ...


@contextmanager
def transaction(store: RelationalStore) -> Iterator[RelationalStore]:
    """Run the block in one store transaction, rolling back on any error."""
    store.begin()
    try:
        yield store
    except BaseException:
        store.rollback()
        raise
    store.commit()


class SqlAlchemyStore:
    """:class:`RelationalStore` on top of a SQLAlchemy engine.

    Each transaction checks out its own connection, held per thread, so
    concurrent writers through one store are isolated by the database.
    Tables come from the supplied metadata or are reflected from the
    database on first use.
    """

    def __init__(self, engine: Engine, metadata: Optional[MetaData] = None) -> None:
        self._engine = engine
        self._metadata = metadata if metadata is not None else MetaData()
        self._local = threading.local()
        self._reflect_lock = threading.Lock()

    @property
    def in_transaction(self) -> bool:
        """Whether the calling thread has an open transaction."""
        return self._current_transaction() is not None

    def begin(self) -> None:
        if self.in_transaction:
            raise StoreError("A transaction is already open on this store in this thread")
        try:
            connection = self._engine.connect()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to connect: {exc}") from exc
        try:
            transaction = connection.begin()
        except SQLAlchemyError as exc:
            connection.close()
            raise StoreError(f"Failed to begin transaction: {exc}") from exc
        self._local.connection = connection
        self._local.transaction = transaction

    def commit(self) -> None:
        transaction = self._current_transaction()
        if transaction is None:
            raise StoreError("No open transaction to commit")
        try:
            transaction.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Commit failed: {exc}") from exc
        finally:
            self._close()

    def rollback(self) -> None:
        transaction = self._current_transaction()
        if transaction is None:
            return
        try:
            transaction.rollback()
        except SQLAlchemyError as exc:
            LOGGER.warning("Rollback failed: %s", exc)
        finally:
            self._close()

    def table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is not None:
            return table
        connection = self._require_connection()
        with self._reflect_lock:
            table = self._metadata.tables.get(name)
            if table is None:
                try:
                    table = Table(name, self._metadata, autoload_with=connection)
                except NoSuchTableError as exc:
                    raise StoreError(f"Table {name} does not exist") from exc
                except SQLAlchemyError as exc:
                    raise StoreError(f"Failed to reflect table {name}: {exc}") from exc
                LOGGER.debug("Reflected table %s", name)
        return table

    def column(self, table: str, name: str) -> ColumnElement:
        try:
            return self.table(table).c[name]
        except KeyError:
            raise StoreError(f"Table {table} has no column {name}") from None

    def insert(self, table: str, values: Mapping[str, Any]) -> Any:
        stmt = insert(self.table(table))
        if values:
            stmt = stmt.values(dict(values))
        result = self._execute(stmt)
        key = result.inserted_primary_key
        identity = key[0] if key else None
        if identity is None:
            raise StoreError(f"Insert into {table} did not produce an identity")
        return identity

    def query_identity(self, table: str, column: str, value: Any) -> Optional[Any]:
        target = self.column(table, column)
        stmt = select(target).where(target == value).limit(1)
        return self._execute(stmt).scalar()

    def update(self, table: str, values: Mapping[str, Any], *criteria: ColumnElement) -> int:
        if not criteria:
            raise StoreError(f"Refusing to update every row of {table}")
        stmt = update(self.table(table)).where(*criteria).values(dict(values))
        return self._execute(stmt).rowcount

    def delete(self, table: str, *criteria: ColumnElement) -> int:
        if not criteria:
            raise StoreError(f"Refusing to delete every row of {table}")
        stmt = delete(self.table(table)).where(*criteria)
        return self._execute(stmt).rowcount

    def _current_transaction(self) -> Optional[Transaction]:
        return getattr(self._local, "transaction", None)

    def _require_connection(self) -> Connection:
        connection = getattr(self._local, "connection", None)
        if connection is None:
            raise StoreError("No open transaction; call begin() first")
        return connection

    def _execute(self, stmt):
        connection = self._require_connection()
        LOGGER.debug("Executing %s", stmt)
        try:
            return connection.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def _close(self) -> None:
        connection = getattr(self._local, "connection", None)
        self._local.connection = None
        self._local.transaction = None
        if connection is not None:
            connection.close()
