"""Shared test fixtures and configuration.

Sets up fake environment variables so attendance.config loads without a
.env file, and provides a temp SQLite record store plus a service wired to
it with a fixed clock and a no-op sleep.
"""

import os

# Patch env vars BEFORE any attendance imports
os.environ.setdefault("RECORD_STORE_PROVIDER", "sqlite")
os.environ.setdefault("ATTENDANCE_SPREADSHEET_ID", "test-attendance-sheet")
os.environ.setdefault("DIRECTORY_SPREADSHEET_ID", "test-directory-sheet")
os.environ.setdefault("ID_POLL_DELAY_SECONDS", "0")

from datetime import datetime

import pytest

NOW = datetime(2026, 10, 18, 10, 30, 0)


@pytest.fixture
def store(tmp_path):
    """Return a SqliteRecordStore backed by a temp file."""
    from attendance.adapters.sqlite_store import SqliteRecordStore
    return SqliteRecordStore(db_path=str(tmp_path / "attendance.db"))


@pytest.fixture
def seed(store):
    """Write a table into the store: header row (when the layout has one) plus data rows."""

    def _seed(layout, rows, header=True):
        if header and layout.first_data_row > 1:
            for column in layout.columns:
                store.update_cell(layout, layout.first_data_row - 1, column, column)
        store.overwrite_rows(layout, [list(row) for row in rows])

    return _seed


@pytest.fixture
def put_cell(store):
    """Write one metadata cell (e.g. a worksheet's "date") by its layout key."""
    from attendance.data.tables import a1_to_rowcol

    def _put(layout, key, value):
        row, col = a1_to_rowcol(layout.cells[key])
        store.update_cell(layout, row, layout.columns[col - 1], value)

    return _put


@pytest.fixture
def test_settings():
    """Settings with a short poll so timeouts are quick."""
    from attendance.config import Settings
    return Settings(ID_POLL_RETRIES=3, ID_POLL_DELAY_SECONDS=0.0)


@pytest.fixture
def sleeps():
    """Records every sleep requested by the bounded poll."""
    return []


@pytest.fixture
def service(store, test_settings, sleeps):
    """AttendanceService over the temp store with a fixed clock."""
    from attendance.core.attendance_service import AttendanceService
    return AttendanceService(
        store, config=test_settings, sleep=sleeps.append, clock=lambda: NOW,
    )
