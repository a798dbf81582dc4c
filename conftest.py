"""Pytest configuration.

IMPORTANT: Environment variables must be set BEFORE importing package code.
settings.py builds the global settings at import time, so the env var setup
happens at module level and package imports are deferred to fixtures.
"""

import os
import tempfile

# Point the default SQLite path at a temp location so no test ever touches
# a developer's database, unless the caller set it explicitly.
if "USER_RECORDS_SQLITE_PATH" not in os.environ:
    _test_base_dir = tempfile.mkdtemp(prefix="user_records_test_")
    os.environ["USER_RECORDS_SQLITE_PATH"] = f"{_test_base_dir}/default.db"

# Environment beats .env in pydantic-settings; an empty URI means "use SQLite"
os.environ["USER_RECORDS_DATABASE_URI"] = ""
