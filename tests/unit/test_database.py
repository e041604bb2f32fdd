"""
Unit tests for garage/database.py URL handling (no engine is created).
"""

import pytest

from garage.config import settings
from garage.database import _get_db_url


def test_sslmode_is_stripped_from_url(monkeypatch):
    monkeypatch.setattr(
        settings, "DATABASE_URL", "postgresql+asyncpg://garage:pw@db/garage?sslmode=require"
    )
    assert _get_db_url() == "postgresql+asyncpg://garage:pw@db/garage"


def test_missing_url_raises(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "")
    with pytest.raises(RuntimeError):
        _get_db_url()
