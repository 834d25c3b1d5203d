from __future__ import annotations

import logging
import time
from typing import Optional

from sqlalchemy import MetaData, create_engine, delete, insert, inspect, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from .errors import StoreError
from .models import DatabaseConfig, WriteOptions
from .persistence import JsonPersister
from .registry import ModelRegistry
from .schema_builder import SCHEMA_VERSION_TABLE, build_metadata, version_table
from .store import SqlAlchemyStore

LOGGER = logging.getLogger("jsonmirror.db")


class DatabaseSession:
    """Manage the SQLAlchemy engine and the tables derived from a registry."""

    def __init__(self, config: DatabaseConfig, registry: ModelRegistry) -> None:
        self._config = config
        self._registry = registry
        self._engine: Optional[Engine] = None
        self._metadata: Optional[MetaData] = None

    def open(self) -> Engine:
        if self._engine is not None:
            return self._engine

        deadline = time.time() + self._config.connect_timeout
        attempts = 0
        while True:
            attempts += 1
            try:
                LOGGER.info("Creating SQLAlchemy engine (attempt %s)", attempts)
                engine = create_engine(self._config.url)
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                self._engine = engine
                LOGGER.info("Connected to database")
                break
            except OperationalError as exc:
                if time.time() >= deadline:
                    raise StoreError("Database connection timed out") from exc
                LOGGER.warning("Database not ready yet (%s), retrying...", exc)
                time.sleep(min(2 * attempts, 10))

        if self._config.apply_schema:
            self.ensure_schema()
        return self._engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StoreError("Engine not initialised; call open()")
        return self._engine

    @property
    def metadata(self) -> MetaData:
        if self._metadata is None:
            self._metadata = build_metadata(self._registry)
            version_table(self._metadata)
        return self._metadata

    def stored_version(self) -> Optional[int]:
        with self.open().connect() as conn:
            return self._stored_version(conn)

    def ensure_schema(self, version: Optional[int] = None) -> bool:
        """Create missing tables; drop and recreate all of them on a version change.

        Returns True when existing tables were dropped.
        """
        version = version or self._config.model_version
        with self.open().begin() as conn:
            stored = self._stored_version(conn)
            recreated = stored is not None and stored != version
            if recreated:
                LOGGER.warning(
                    "Model version changed from %s to %s, recreating all tables",
                    stored,
                    version,
                )
                self.metadata.drop_all(conn)
            self.metadata.create_all(conn)
            self._write_version(conn, version)
        LOGGER.info("Schema ready (model version %s)", version)
        return recreated

    def recreate_schema(self, version: Optional[int] = None) -> None:
        version = version or self._config.model_version
        with self.open().begin() as conn:
            self.metadata.drop_all(conn)
            self.metadata.create_all(conn)
            self._write_version(conn, version)
        LOGGER.info("Recreated schema (model version %s)", version)

    def store(self) -> SqlAlchemyStore:
        return SqlAlchemyStore(self.open(), self.metadata)

    def persister(self, options: WriteOptions = WriteOptions.DEFAULT) -> JsonPersister:
        return JsonPersister(self.store(), self._registry, options)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None

    def _stored_version(self, conn: Connection) -> Optional[int]:
        if not inspect(conn).has_table(SCHEMA_VERSION_TABLE):
            return None
        versions = version_table(self.metadata)
        return conn.execute(select(versions.c.version).where(versions.c.id == 1)).scalar()

    def _write_version(self, conn: Connection, version: int) -> None:
        versions = version_table(self.metadata)
        conn.execute(delete(versions))
        conn.execute(insert(versions).values(id=1, version=version))
