"""
Attendance Tracker — Data Models.

People are identified by a numeric person id; names are display data.
Attendance events form an append-only ledger, and aggregates are always
rebuilt from that ledger rather than patched in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class LedgerKind(Enum):
    SERVICE = "service"   # recurring Sunday service, keyed by name + date
    EVENT = "event"       # named events, keyed by name + event + date


class ActivityLevel(Enum):
    CORE = "Core"
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    ARCHIVE = "Archive"


@dataclass
class PersonIdentity:
    """A resolved person: durable id plus the best known display data."""

    id: int
    full_name: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""


@dataclass
class DirectoryEntry:
    """One row of the authoritative directory."""

    id: int
    full_name: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""


@dataclass
class AttendanceEvent:
    """One person's presence at one dated occurrence.

    ``event_time`` is set only when the stored value carried a time of day;
    dedup compares it exactly and falls back to ``event_date`` otherwise.
    """

    person_id: int | None
    full_name: str
    event_name: str
    event_date: date | None
    ledger: LedgerKind = LedgerKind.SERVICE
    event_id: str = ""
    event_time: datetime | None = None
    role: str = ""                        # role / notes column
    recorded_at: datetime | None = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    row_number: int | None = None         # 1-based sheet row when read from a ledger


@dataclass
class AttendanceAggregate:
    """Per-person statistics derived from the ledger."""

    person_id: int
    full_name: str
    first_name: str = ""
    last_name: str = ""
    events_this_month: int = 0
    events_in_trailing_window: int = 0
    volunteer_count: int = 0
    last_attended_date: date | None = None
    last_attended_event_name: str = ""
    total_events_attended: int = 0
    activity_level: ActivityLevel = ActivityLevel.INACTIVE
    prior_calendar_year_count: int = 0
    guest_tag: str = ""


@dataclass
class EventFlags:
    """First-time and follow-up flags for one ledger row."""

    row_number: int | None
    person_id: int | None
    full_name: str
    first_time: bool = False
    needs_follow_up: bool = False


@dataclass
class FlagReport:
    per_event_flags: list[EventFlags] = field(default_factory=list)
    per_person_guest_tags: dict[int, str] = field(default_factory=dict)


@dataclass
class EventCounters:
    """Headline counters shown on the event registration worksheet."""

    attendees_this_month: int = 0
    attendees_this_event: int = 0


@dataclass
class SubmissionResult:
    inserted: int = 0
    skipped: int = 0
    total: int = 0
