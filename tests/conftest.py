"""
Pytest configuration for tablemap.

Provides fixtures for:
- Settings and DSN for integration tests
- Database availability probing and schema initialization (psycopg)
- Table cleanup between integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import psycopg
import pytest

from tablemap.config import Settings

INIT_SQL = Path(__file__).parent.parent / "db" / "init.sql"
DEMO_TABLES = ("public.fruits", "public.products", "public.inventory", 'public."collate"')


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
        db_name=os.getenv("DB_NAME", "tablemap"),
        connect_attempts=1,
        connect_backoff=0,
        batch_size=2,
        stream_prefetch=2,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn()


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the demo schema exists (db/init.sql is idempotent).
    """
    with db_connection.cursor() as cur:
        cur.execute(INIT_SQL.read_text(encoding="utf-8"))
    db_connection.commit()
    return True


def _truncate_demo_tables(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.execute(f"TRUNCATE TABLE {', '.join(DEMO_TABLES)} RESTART IDENTITY CASCADE;")
    conn.commit()


@pytest.fixture(scope="function")
def clean_tables(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the demo tables before and after each test function.

    Identity sequences restart, so the first fruit created gets id 1.
    """
    _truncate_demo_tables(db_connection)
    yield
    _truncate_demo_tables(db_connection)
