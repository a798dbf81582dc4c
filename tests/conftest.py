"""Pytest fixtures for user-records tests.

Every test gets its own temporary SQLite file and a fresh process-wide
connection, which is closed again after the test.
"""

import os
import shutil
import tempfile

import pytest
import pytest_asyncio


@pytest.fixture
def db_settings():
    """DatabaseSettings pointing at a temporary SQLite file.

    Yields:
        DatabaseSettings: Settings for an isolated database
    """
    # Import package code here (after env vars are set in the root conftest)
    from user_records.config.settings import DatabaseSettings

    temp_dir = tempfile.mkdtemp(prefix="user_records_db_")
    db_path = os.path.join(temp_dir, "test.db")

    yield DatabaseSettings(uri=f"sqlite+aiosqlite:///{db_path}")

    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest_asyncio.fixture
async def disconnected(db_settings):
    """Guarantee no process-wide connection is left open around a test."""
    from user_records.db import db_config

    await db_config.close_connection()
    yield db_settings
    await db_config.close_connection()


@pytest_asyncio.fixture
async def user_manager(disconnected):
    """An initialized UserManager on the default user schema.

    Yields:
        UserManager: Bound to the "users" collection
    """
    from user_records.records import UserManager

    manager = UserManager(disconnected, "users")
    await manager.initialize()
    yield manager
    await manager.close_connection()


@pytest.fixture
def make_user():
    """Factory for valid create payloads."""

    def _make_user(name: str, **extra):
        payload = {
            "username": name,
            "email": f"{name}@example.com",
            "password": f"{name}-secret",
        }
        payload.update(extra)
        return payload

    return _make_user
