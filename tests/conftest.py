"""
Pytest configuration for the migrator.

Provides:
- A RowSource factory over in-memory rows (see tests/fakes.py)
- Row fixtures for the author/book outer join
- Settings, DSN and connection fixtures for integration tests
"""

from __future__ import annotations

import os
from typing import Callable, Generator, Iterable, List, Optional

import psycopg
import pytest

from sqlindexer.config import Settings
from sqlindexer.infrastructure.source import RowSource
from tests.fakes import FakeConnection, FakeCursor, Row, author_row


@pytest.fixture
def make_source() -> Callable[..., tuple[RowSource, FakeConnection]]:
    """
    Build a RowSource over in-memory rows; returns (source, connection).
    """

    def _make(
        rows: Iterable[Row],
        fetch_size: int = 2,
        execute_error: Optional[Exception] = None,
        fetch_error: Optional[Exception] = None,
    ) -> tuple[RowSource, FakeConnection]:
        cursor = FakeCursor(rows, execute_error=execute_error, fetch_error=fetch_error)
        conn = FakeConnection(cursor)
        return RowSource(lambda: conn, fetch_size=fetch_size), conn

    return _make


@pytest.fixture
def library_rows() -> List[tuple]:
    """
    Three authors: author 1 with two books, author 2 with one, author 3 with none.
    """
    return [
        author_row(1, "Ficciones", "Short stories", "1944-01-01"),
        author_row(1, "El Aleph", "More short stories", "1949-01-01"),
        author_row(2, "Invisible Cities", "Imagined cities", "1972-01-01"),
        author_row(3),
    ]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "library"),
        elasticsearch_url=os.getenv("ELASTICSEARCH_URL", "http://localhost:9200"),
        elasticsearch_index=os.getenv("ELASTICSEARCH_INDEX", "sqlindexer-test-authors"),
        elasticsearch_api_key=os.getenv("ELASTICSEARCH_API_KEY"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection(test_dsn: str) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if the database is not available.
    """
    try:
        conn = psycopg.connect(test_dsn, connect_timeout=5)
    except psycopg.OperationalError:
        pytest.skip("Database not available for integration tests")
    try:
        yield conn
    finally:
        conn.close()
