"""
Attendance Tracker — Centralized configuration.

Loads all settings from .env and validates them.
Every other module reads configuration through the `settings` singleton.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from attendance/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_SOURCE_PRIORITY = [
    "Directory",
    "Service Attendance",
    "Event Attendance",
    "Sunday Registration",
    "Event Registration",
    "Sunday Service",
    "New Member Form",
]


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Record store: "sheets" | "sqlite"
    RECORD_STORE_PROVIDER: str = "sheets"

    # Google Sheets (only needed when RECORD_STORE_PROVIDER=sheets)
    ATTENDANCE_SPREADSHEET_ID: str = ""
    DIRECTORY_SPREADSHEET_ID: str = ""   # empty → ConfigurationMissing on use
    GOOGLE_CREDENTIALS_PATH: str = "credentials.json"
    GOOGLE_TOKEN_PATH: str = "token.json"
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""   # set → used instead of the user token

    # SQLite (only needed when RECORD_STORE_PROVIDER=sqlite)
    DATABASE_PATH: str = "data/attendance.db"

    TIMEZONE: str = "America/New_York"

    # Aggregation
    TRAILING_WINDOW_MONTHS: int = 3
    CORE_THRESHOLD: int = 12
    ACTIVE_THRESHOLD: int = 3
    ARCHIVE_AFTER_MONTHS: int = 12
    FOLLOW_UP_THRESHOLD_DAYS: int = 30

    # Bounded wait for a form row's person id
    ID_POLL_RETRIES: int = 50
    ID_POLL_DELAY_SECONDS: float = 2.5

    # Identity sources, highest priority first
    IDENTITY_SOURCE_PRIORITY: list[str] = DEFAULT_SOURCE_PRIORITY

    @field_validator("IDENTITY_SOURCE_PRIORITY", mode="before")
    @classmethod
    def parse_priority(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [name.strip() for name in v.split(",") if name.strip()]
        return list(DEFAULT_SOURCE_PRIORITY)

    @field_validator(
        "TRAILING_WINDOW_MONTHS",
        "CORE_THRESHOLD",
        "ACTIVE_THRESHOLD",
        "ARCHIVE_AFTER_MONTHS",
        "FOLLOW_UP_THRESHOLD_DAYS",
        "ID_POLL_RETRIES",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        RECORD_STORE_PROVIDER=os.getenv("RECORD_STORE_PROVIDER", "sheets"),
        ATTENDANCE_SPREADSHEET_ID=os.getenv("ATTENDANCE_SPREADSHEET_ID", ""),
        DIRECTORY_SPREADSHEET_ID=os.getenv("DIRECTORY_SPREADSHEET_ID", ""),
        GOOGLE_CREDENTIALS_PATH=os.getenv("GOOGLE_CREDENTIALS_PATH", "credentials.json"),
        GOOGLE_TOKEN_PATH=os.getenv("GOOGLE_TOKEN_PATH", "token.json"),
        GOOGLE_SERVICE_ACCOUNT_FILE=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/attendance.db"),
        TIMEZONE=os.getenv("TIMEZONE", "America/New_York"),
        TRAILING_WINDOW_MONTHS=os.getenv("TRAILING_WINDOW_MONTHS", "3"),
        CORE_THRESHOLD=os.getenv("CORE_THRESHOLD", "12"),
        ACTIVE_THRESHOLD=os.getenv("ACTIVE_THRESHOLD", "3"),
        ARCHIVE_AFTER_MONTHS=os.getenv("ARCHIVE_AFTER_MONTHS", "12"),
        FOLLOW_UP_THRESHOLD_DAYS=os.getenv("FOLLOW_UP_THRESHOLD_DAYS", "30"),
        ID_POLL_RETRIES=os.getenv("ID_POLL_RETRIES", "50"),
        ID_POLL_DELAY_SECONDS=float(os.getenv("ID_POLL_DELAY_SECONDS", "2.5")),
        IDENTITY_SOURCE_PRIORITY=os.getenv("IDENTITY_SOURCE_PRIORITY", ""),
    )


# Singleton, imported by all other modules as:
#   from attendance.config import settings
settings = _load_settings()
