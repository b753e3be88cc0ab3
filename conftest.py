"""Pytest configuration: set test env before any filegate imports so DB, blobs and grants use test values."""

import os
import tempfile

import pytest

# Set before filegate.db.session or filegate.config are used so engine and settings use test paths
_tmp = tempfile.mkdtemp(prefix="filegate_test_")
os.environ.setdefault("FILEGATE_DB_PATH", os.path.join(_tmp, "test.db"))
os.environ.setdefault("FILEGATE_STORAGE_BASE_PATH", os.path.join(_tmp, "blobs"))
os.environ.setdefault("FILEGATE_PUBLIC_BASE_URL", "http://testserver")
os.environ.setdefault("FILEGATE_SESSION_SECRET", "test-session-secret-at-least-32-characters")
# Password routes are limited to 10/minute; tests hit them more often
os.environ.setdefault("FILEGATE_RATE_LIMIT_ENABLED", "false")


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    """Each test starts with an empty sharing-settings cache."""
    from filegate.folders import settings as folder_settings

    folder_settings._cache = None
    yield
    folder_settings._cache = None
