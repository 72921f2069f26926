import os
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

import trackupload.database.connection as connection
from trackupload.config.settings import Settings
from trackupload.database.connection import close_pool, get_connection, init_pool

SCHEMA_PATH = Path(connection.__file__).with_name("schema.sql")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "trackupload_test")
    os.environ.setdefault("DB_CONNECT_TIMEOUT_SECONDS", "3")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
    except Exception as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    try:
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text())
            conn.commit()
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_user(integration_pool: None) -> Generator[uuid.UUID, None, None]:
    """A fresh owner id; every track it owns is deleted after the test."""
    user_id = uuid.uuid4()
    yield user_id
    with get_connection() as conn:
        conn.execute("DELETE FROM tracks WHERE user_id = %s", (user_id,))
        conn.commit()
