"""Record store factory — creates the right adapter based on config."""

from __future__ import annotations

from attendance.config import settings
from attendance.ports.record_store_port import RecordStorePort


def create_record_store() -> RecordStorePort:
    """Return the record store matching the RECORD_STORE_PROVIDER setting."""
    provider = settings.RECORD_STORE_PROVIDER.lower()

    if provider == "sheets":
        from attendance.adapters.google_sheets import GoogleSheetsStore

        return GoogleSheetsStore()

    if provider == "sqlite":
        from attendance.adapters.sqlite_store import SqliteRecordStore

        return SqliteRecordStore(settings.DATABASE_PATH)

    raise ValueError(f"Unknown RECORD_STORE_PROVIDER: {provider!r}")
