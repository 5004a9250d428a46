"""Tests for attendance.config — Settings parsing."""

from attendance.config import DEFAULT_SOURCE_PRIORITY, Settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.RECORD_STORE_PROVIDER == "sheets"
        assert s.TRAILING_WINDOW_MONTHS == 3
        assert s.CORE_THRESHOLD == 12
        assert s.ACTIVE_THRESHOLD == 3
        assert s.ARCHIVE_AFTER_MONTHS == 12
        assert s.FOLLOW_UP_THRESHOLD_DAYS == 30
        assert s.ID_POLL_RETRIES == 50
        assert s.ID_POLL_DELAY_SECONDS == 2.5
        assert s.IDENTITY_SOURCE_PRIORITY == DEFAULT_SOURCE_PRIORITY

    def test_priority_from_comma_separated_string(self):
        s = Settings(IDENTITY_SOURCE_PRIORITY=" Directory , Sunday Registration ,")
        assert s.IDENTITY_SOURCE_PRIORITY == ["Directory", "Sunday Registration"]

    def test_blank_priority_uses_default(self):
        assert Settings(IDENTITY_SOURCE_PRIORITY="").IDENTITY_SOURCE_PRIORITY == DEFAULT_SOURCE_PRIORITY

    def test_numeric_strings(self):
        s = Settings(CORE_THRESHOLD="10", ID_POLL_RETRIES="5")
        assert s.CORE_THRESHOLD == 10
        assert s.ID_POLL_RETRIES == 5

    def test_directory_id_is_not_defaulted(self):
        assert Settings().DIRECTORY_SPREADSHEET_ID == ""

    def test_service_account_is_off_by_default(self):
        assert Settings().GOOGLE_SERVICE_ACCOUNT_FILE == ""
