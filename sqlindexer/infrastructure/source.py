"""
Row source for the migrator.

Provides connection helpers for the PostgreSQL source and the `RowSource`
cursor wrapper, which streams the read query through a server-side cursor and
maps each row onto a `Record` without materializing the result set.

Connection establishment is retried for transient failures using tenacity.
Once a connection exists nothing else is retried.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

import psycopg
from psycopg import Connection
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sqlindexer.config import Settings, get_settings
from sqlindexer.domain.models import Record, record_from_row
from sqlindexer.errors import ConnectionFailure, DecodeError, QueryError
from sqlindexer.utils.logging import get_logger

log = get_logger(__name__)

ConnectionFactory = Callable[[], Connection]


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings, honouring SOURCE_DSN when set."""
    settings = settings or get_settings()
    if settings.source_dsn:
        return settings.source_dsn
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
)
def _connect_with_retry(dsn: str, connect_timeout: int) -> Connection:
    return psycopg.connect(dsn, connect_timeout=connect_timeout)


def connect_source(dsn: str, connect_timeout: int = 10) -> Connection:
    """
    Open a dedicated source connection.

    Retries up to 3 times with exponential backoff for transient connection
    errors, then raises ConnectionFailure. Invalid credentials surface as an
    OperationalError from the driver and end up here as well. Errors that are
    not retried, such as a malformed DSN, raise ConnectionFailure at once.
    """
    try:
        return _connect_with_retry(dsn, connect_timeout)
    except RetryError as exc:
        cause = exc.last_attempt.exception()
        raise ConnectionFailure(f"cannot connect to source database: {cause}") from cause
    except psycopg.Error as exc:
        raise ConnectionFailure(f"cannot connect to source database: {exc}") from exc


def source_connection_factory(settings: Optional[Settings] = None) -> ConnectionFactory:
    """Bind settings into a zero-argument connection factory for RowSource."""
    settings = settings or get_settings()
    dsn = build_dsn(settings)
    timeout = settings.db_connect_timeout
    return lambda: connect_source(dsn, connect_timeout=timeout)


def _classify(exc: psycopg.Error) -> type:
    if isinstance(exc, (psycopg.OperationalError, psycopg.InterfaceError)):
        return ConnectionFailure
    if isinstance(exc, psycopg.DataError):
        return DecodeError
    return QueryError


class RowSource:
    """
    Forward-only stream of Records over one read query.

    The source owns its connection from `open` until `close`. Use it as a
    context manager so the cursor and the connection are released on every
    exit path, including when iteration stops early.

    Example
    -------
        with RowSource(source_connection_factory()) as source:
            source.open(query)
            for record in source:
                ...
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        fetch_size: int = 1_000,
        cursor_name: str = "sqlindexer_rows",
    ) -> None:
        self._connection_factory = connection_factory
        self.fetch_size = fetch_size
        self.cursor_name = cursor_name
        self._conn: Optional[Connection] = None
        self._cursor: Any = None
        self.rows_read = 0

    @property
    def is_open(self) -> bool:
        return self._cursor is not None

    def open(self, query: str) -> "RowSource":
        """
        Connect and execute `query` through a named (server-side) cursor.

        Raises
        ------
        ConnectionFailure
            If the source is unreachable or rejects the credentials.
        QueryError
            If the source rejects the query.
        """
        if self._cursor is not None:
            raise RuntimeError("RowSource is already open")

        self._conn = self._connection_factory()
        try:
            # Named cursor keeps the result set on the server.
            self._cursor = self._conn.cursor(name=self.cursor_name)
            self._cursor.execute(query)
        except psycopg.Error as exc:
            self.close()
            error_cls = _classify(exc)
            if error_cls is DecodeError:
                error_cls = QueryError
            raise error_cls(f"source query failed: {exc}") from exc

        log.info(
            "[SOURCE OPEN] Query executed",
            extra={"cursor": self.cursor_name, "fetch_size": self.fetch_size},
        )
        return self

    def _batches(self) -> Iterator[list]:
        while True:
            try:
                batch = self._cursor.fetchmany(self.fetch_size)
            except psycopg.Error as exc:
                raise _classify(exc)(f"failed to fetch source rows: {exc}") from exc
            if not batch:
                break
            yield batch

    def __iter__(self) -> Iterator[Record]:
        if self._cursor is None:
            raise RuntimeError("RowSource.open() must be called before iterating")
        for batch in self._batches():
            for row in batch:
                record = record_from_row(row)
                self.rows_read += 1
                yield record

    def close(self) -> None:
        """
        Release the cursor and the connection. Safe to call more than once.
        """
        cursor, self._cursor = self._cursor, None
        conn, self._conn = self._conn, None
        try:
            if cursor is not None:
                cursor.close()
        except psycopg.Error as exc:
            log.warning("Failed to close source cursor", extra={"error": str(exc)})
        finally:
            if conn is not None:
                conn.close()
        if conn is not None:
            log.info("[SOURCE CLOSED]", extra={"rows_read": self.rows_read})

    def __enter__(self) -> "RowSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "RowSource",
    "build_dsn",
    "connect_source",
    "source_connection_factory",
]
