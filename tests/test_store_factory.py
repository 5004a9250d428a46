"""Tests for the record store factory."""

from unittest.mock import patch

import pytest

from attendance.adapters.store_factory import create_record_store


class TestCreateRecordStore:
    def test_sheets(self):
        with patch("attendance.adapters.store_factory.settings") as mock_settings:
            mock_settings.RECORD_STORE_PROVIDER = "sheets"
            mock_settings.ATTENDANCE_SPREADSHEET_ID = "a"
            mock_settings.DIRECTORY_SPREADSHEET_ID = "d"
            store = create_record_store()
        from attendance.adapters.google_sheets import GoogleSheetsStore
        assert isinstance(store, GoogleSheetsStore)

    def test_sqlite(self, tmp_path):
        with patch("attendance.adapters.store_factory.settings") as mock_settings:
            mock_settings.RECORD_STORE_PROVIDER = "SQLite"
            mock_settings.DATABASE_PATH = str(tmp_path / "f.db")
            store = create_record_store()
        from attendance.adapters.sqlite_store import SqliteRecordStore
        assert isinstance(store, SqliteRecordStore)
        assert (tmp_path / "f.db").exists()

    def test_unknown_provider(self):
        with patch("attendance.adapters.store_factory.settings") as mock_settings:
            mock_settings.RECORD_STORE_PROVIDER = "excel"
            with pytest.raises(ValueError, match="Unknown RECORD_STORE_PROVIDER"):
                create_record_store()
