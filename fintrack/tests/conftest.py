"""Shared fixtures for FinTrack tests."""

import pytest

from fintrack.config import settings
from fintrack.db.sqlite import Database
from fintrack.services import progress


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database in a temporary directory."""
    return Database(tmp_path / "test.db")


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep uploads and databases out of the home directory."""
    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")


@pytest.fixture(autouse=True)
def reset_progress():
    """Clear run tracking between tests."""
    with progress._progress_lock:
        progress._run_progress.clear()
    yield
    with progress._progress_lock:
        progress._run_progress.clear()
