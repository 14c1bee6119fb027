from __future__ import annotations

import psycopg
import pytest
from tenacity import wait_none

from sqlindexer.config import Settings
from sqlindexer.errors import ConnectionFailure, DecodeError, ErrorCategory, QueryError
from sqlindexer.infrastructure import source as source_module
from sqlindexer.infrastructure.source import (
    RowSource,
    build_dsn,
    connect_source,
    source_connection_factory,
)
from sqlindexer.pipeline.coordinator import PipelineCoordinator
from sqlindexer.pipeline.results import RunState
from tests.fakes import RecordingIndexer, author_row

QUERY = "SELECT * FROM authors"
CONNECT_ATTEMPTS = 3


def test_rows_are_streamed_in_fetch_size_batches(make_source, library_rows):
    source, conn = make_source(library_rows, fetch_size=3)

    with source:
        source.open(QUERY)
        records = list(source)

    assert [r.id for r in records] == [1, 1, 2, 3]
    assert source.rows_read == len(library_rows)
    assert conn.cursor_names == ["sqlindexer_rows"]
    assert conn._cursor.executed == [QUERY]
    assert conn._cursor.fetch_sizes == [3, 3, 3]
    assert conn._cursor.closed and conn.closed


def test_early_exit_still_releases_cursor_and_connection(make_source, library_rows):
    source, conn = make_source(library_rows)

    with source:
        source.open(QUERY)
        first = next(iter(source))

    assert first.id == 1
    assert not source.is_open
    assert conn._cursor.closed and conn.closed


def test_decode_error_releases_resources(make_source):
    rows = [author_row(1), (2, None, "bio", "1970-01-01", None, None, None)]
    source, conn = make_source(rows)

    with pytest.raises(DecodeError, match="name"):
        with source:
            source.open(QUERY)
            list(source)

    assert conn.closed


def test_rejected_query_raises_query_error_and_closes(make_source):
    error = psycopg.errors.UndefinedTable('relation "authors" does not exist')
    source, conn = make_source([], execute_error=error)

    with pytest.raises(QueryError, match="authors"):
        source.open(QUERY)

    assert conn.closed
    assert not source.is_open


def test_connection_lost_mid_stream_is_a_connection_failure(make_source):
    source, conn = make_source([], fetch_error=psycopg.OperationalError("server closed"))

    with source:
        source.open(QUERY)
        with pytest.raises(ConnectionFailure, match="server closed"):
            list(source)

    assert conn.closed


def test_iterating_before_open_is_an_error(make_source):
    source, _ = make_source([])

    with pytest.raises(RuntimeError):
        list(source)


def test_close_is_idempotent(make_source, library_rows):
    source, conn = make_source(library_rows)
    source.open(QUERY)

    source.close()
    source.close()

    assert conn.closed


def test_build_dsn_prefers_explicit_source_dsn():
    settings = Settings(SOURCE_DSN="postgresql://u:p@db:6543/x")
    assert build_dsn(settings) == "postgresql://u:p@db:6543/x"


def test_build_dsn_from_parts():
    settings = Settings(DB_HOST="db", DB_PORT=6543, DB_USER="u", DB_PASSWORD="p", DB_NAME="lib")
    assert build_dsn(settings) == "postgresql://u:p@db:6543/lib"


def test_connect_source_retries_then_raises_connection_failure(monkeypatch):
    attempts: list[str] = []

    def refuse(dsn: str, connect_timeout: int) -> None:
        attempts.append(dsn)
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(source_module.psycopg, "connect", refuse)
    monkeypatch.setattr(source_module._connect_with_retry.retry, "wait", wait_none())

    with pytest.raises(ConnectionFailure, match="connection refused"):
        connect_source("postgresql://nowhere/db", connect_timeout=1)

    assert len(attempts) == CONNECT_ATTEMPTS


def test_malformed_dsn_is_a_connection_failure_without_retry(monkeypatch):
    attempts: list[str] = []

    def reject(dsn: str, connect_timeout: int) -> None:
        attempts.append(dsn)
        raise psycopg.ProgrammingError('invalid connection option "bogus_option"')

    monkeypatch.setattr(source_module.psycopg, "connect", reject)

    with pytest.raises(ConnectionFailure, match="bogus_option"):
        connect_source("host=localhost dbname=x bogus_option=1", connect_timeout=1)

    assert len(attempts) == 1


def test_malformed_dsn_fails_the_run_instead_of_raising():
    settings = Settings(SOURCE_DSN="host=localhost port=5432 dbname=x bogus_option=1")
    source = RowSource(source_connection_factory(settings))

    summary = PipelineCoordinator(source, RecordingIndexer(), workers=2).run(QUERY)

    assert summary.state is RunState.FAILED
    assert summary.error_category is ErrorCategory.CONNECTION
    assert "bogus_option" in (summary.error_message or "")
