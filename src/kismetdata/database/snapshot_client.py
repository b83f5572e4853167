"""Kismet sqlite3 log reader."""

import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Sequence

from sqlalchemy import column, create_engine, inspect, select, table
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import SQLAlchemyError

from kismetdata.errors import BackendConnectionError, ConfigurationError, ParseError
from kismetdata.models import Record, SnapshotFilter, SnapshotSettings
from kismetdata.reader import RecordReader
from kismetdata.utils.logging import get_logger

logger = get_logger(__name__)

KISMET_META_TABLE = "KISMET"


def get_readonly_engine(sqlite_path: str) -> Engine:
    """Engine for an existing sqlite file; never creates or writes the file."""
    # as_uri() percent-encodes "#" and "?" so they stay part of the file name
    uri = f"{Path(sqlite_path).resolve().as_uri()}?mode=ro"
    return create_engine(
        "sqlite://",
        creator=lambda: sqlite3.connect(uri, uri=True),
        future=True,
    )


def _first_match(candidates: Sequence[str], requested: Sequence[str]) -> Optional[str]:
    for name in candidates:
        if name in requested:
            return name
    return None


class RowDecoder:
    """Maps requested columns onto Record fields; other columns are dropped."""

    def __init__(self, columns: Sequence[str], settings: SnapshotSettings):
        self.identifier_column = _first_match(settings.identifier_columns, columns)
        self.latitude_column = _first_match(settings.latitude_columns, columns)
        self.longitude_column = _first_match(settings.longitude_columns, columns)

    def _coordinate(self, row: Dict[str, Any], name: Optional[str]) -> float:
        if name is None:
            return 0.0
        value = row.get(name)
        if value is None or value == "":
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Column '{name}' is not a coordinate: {value!r}") from e

    def decode(self, row: Dict[str, Any]) -> Record:
        identifier = ""
        if self.identifier_column is not None:
            value = row.get(self.identifier_column)
            if isinstance(value, bytes):
                try:
                    value = value.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise ParseError(f"Column '{self.identifier_column}' is not valid UTF-8") from e
            identifier = "" if value is None else str(value)

        return Record(
            identifier=identifier,
            latitude=self._coordinate(row, self.latitude_column),
            longitude=self._coordinate(row, self.longitude_column),
        )


class KismetDBClient(RecordReader):
    """Reads device records from one table of a Kismet sqlite3 log."""

    backend = "db"

    def __init__(
        self,
        engine: Engine,
        connection: Connection,
        query: SnapshotFilter,
        settings: Optional[SnapshotSettings] = None,
    ):
        super().__init__()
        self.query = query
        self.settings = settings or SnapshotSettings()
        self.decoder = RowDecoder(query.columns, self.settings)
        self._engine = engine
        self._connection = connection

    @classmethod
    def open(
        cls,
        path: str,
        table_name: str,
        columns: Sequence[str],
        *,
        settings: Optional[SnapshotSettings] = None,
    ) -> "KismetDBClient":
        """
        Open a snapshot read-only and check the table and columns exist.

        Raises:
            BackendConnectionError: The file is missing or not a sqlite database
            ConfigurationError: The table or a column is not in the schema
        """
        if not table_name or not columns:
            raise ConfigurationError("A table and at least one column are required")
        query = SnapshotFilter(table=table_name, columns=tuple(columns))

        db_path = Path(path)
        if not db_path.is_file():
            raise BackendConnectionError(f"Snapshot file not found: {path}")

        engine = get_readonly_engine(path)
        try:
            connection = engine.connect()
        except SQLAlchemyError as e:
            engine.dispose()
            raise BackendConnectionError(f"Failed to open snapshot {path}: {e}") from e

        client = cls(engine, connection, query, settings)
        try:
            client._check_schema()
        except Exception:
            client.finish()
            raise
        logger.info(f"Opened snapshot {path} (table {table_name})")
        return client

    @classmethod
    def from_filter(
        cls,
        path: str,
        query: SnapshotFilter,
        *,
        settings: Optional[SnapshotSettings] = None,
    ) -> "KismetDBClient":
        return cls.open(path, query.table, query.columns, settings=settings)

    def _check_schema(self) -> None:
        try:
            inspector = inspect(self._connection)
            table_names = inspector.get_table_names()
            if self.query.table not in table_names:
                raise ConfigurationError(f"Table '{self.query.table}' not found in snapshot")
            known_columns = {col["name"] for col in inspector.get_columns(self.query.table)}
            if KISMET_META_TABLE in table_names:
                self._log_db_version()
        except SQLAlchemyError as e:
            raise BackendConnectionError(f"Failed to read snapshot schema: {e}") from e

        missing = [name for name in self.query.columns if name not in known_columns]
        if missing:
            raise ConfigurationError(
                f"Columns not found in table '{self.query.table}': {', '.join(missing)}"
            )

    def _log_db_version(self) -> None:
        meta = table(KISMET_META_TABLE, column("db_version"))
        try:
            version = self._connection.execute(select(meta.c.db_version).limit(1)).scalar()
        except SQLAlchemyError as e:
            logger.debug(f"Could not read Kismet log version: {e}")
            return
        logger.debug(f"Kismet log db_version={version}")

    def _iter_records(self) -> Iterator[Record]:
        # Duplicate filter columns are read once
        names = list(dict.fromkeys(self.query.columns))
        source = table(self.query.table, *(column(name) for name in names))
        stmt = select(*(source.c[name] for name in names))
        try:
            result = self._connection.execution_options(stream_results=True).execute(stmt)
        except SQLAlchemyError as e:
            raise BackendConnectionError(f"Failed to query table '{self.query.table}': {e}") from e
        return self._generate(result, names)

    def _generate(self, result, names: Sequence[str]) -> Iterator[Record]:
        try:
            while True:
                try:
                    row: Optional[Row] = result.fetchone()
                except SQLAlchemyError as e:
                    raise BackendConnectionError(f"Failed to read from '{self.query.table}': {e}") from e
                if row is None:
                    return
                yield self.decoder.decode(dict(zip(names, row)))
        finally:
            result.close()

    def _release(self) -> None:
        try:
            self._connection.close()
        finally:
            self._engine.dispose()
