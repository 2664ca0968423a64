"""Pytest configuration and shared fixtures.

This module provides:
- Temporary data and backup directories
- A deterministic clock so minted ids and timestamps are predictable
- A store, a store context and a Flask test client wired to them
"""
import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict

import pytest

from api.app import create_app
from expense_store.config import StoreConfig
from expense_store.context import StoreContext
from expense_store.store import ExpenseStore


class FakeClock:
    """Returns strictly increasing UTC instants, one millisecond apart."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self.current += timedelta(milliseconds=1)
            return self.current


# =============================================================================
# Directory and Path Fixtures
# =============================================================================


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Directory holding the primary document."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def temp_backup_dir(tmp_path: Path) -> Path:
    """Directory receiving exported backups (created on first export)."""
    return tmp_path / "downloads"


@pytest.fixture
def data_file(temp_data_dir: Path) -> Path:
    return temp_data_dir / "expense_data.json"


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(data_file: Path, temp_backup_dir: Path, clock: FakeClock) -> ExpenseStore:
    return ExpenseStore(data_file, temp_backup_dir, clock=clock)


@pytest.fixture
def context(store: ExpenseStore):
    ctx = StoreContext(store)
    yield ctx
    ctx.close()


@pytest.fixture
def write_json(data_file: Path):
    """Write an arbitrary payload to the primary document file."""

    def _write(payload: Any) -> Path:
        data_file.write_text(json.dumps(payload), encoding="utf-8")
        return data_file

    return _write


@pytest.fixture
def legacy_document() -> Dict[str, Any]:
    """A document written before the 'Others' category existed."""
    return {
        "version": "1.0",
        "lastUpdated": "2023-12-01T08:00:00.000Z",
        "settings": {"currency": "₹"},
        "paymentMethods": [{"id": "cash", "name": "Cash", "icon": "💵", "type": "cash"}],
        "categories": [
            {"id": "1", "name": "Healthcare", "icon": "🏥"},
            {"id": "2", "name": "Food", "icon": "🍕"},
        ],
        "expenses": [
            {
                "id": "exp_1701417600000",
                "amount": 120.5,
                "categoryId": "2",
                "paymentMethod": "cash",
                "description": "Lunch",
                "location": "",
                "date": "2023-12-01T07:30:00.000Z",
                "createdAt": "2023-12-01T07:31:00.000Z",
            }
        ],
    }


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def app(temp_data_dir: Path, temp_backup_dir: Path, clock: FakeClock):
    config = StoreConfig(data_dir=temp_data_dir, backup_dir=temp_backup_dir, env="dev")
    flask_app = create_app(config=config, clock=clock)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
