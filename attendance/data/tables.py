"""
Attendance Tracker — Table layouts.

Each table the system touches is described by a TableLayout: the columns it
holds (by name, in sheet order), the first row that carries data, and any
single metadata cells (e.g. the service date typed into B2 of a worksheet).
Core code reads rows through `records()` and never indexes raw columns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

ATTENDANCE = "attendance"
DIRECTORY_BOOK = "directory"

_A1_RE = re.compile(r"^([A-Z]+)(\d+)$")


def a1_to_rowcol(a1: str) -> tuple[int, int]:
    """Convert "B2" to (2, 2). Both values are 1-based."""
    match = _A1_RE.match(a1.strip().upper())
    if not match:
        raise ValueError(f"Not an A1 cell reference: {a1!r}")
    letters, row = match.groups()
    col = 0
    for ch in letters:
        col = col * 26 + (ord(ch) - ord("A") + 1)
    return int(row), col


def column_letter(col: int) -> str:
    """Convert a 1-based column number to its letter (1 -> "A", 27 -> "AA")."""
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


@dataclass(frozen=True)
class TableLayout:
    """Named-column description of one table in the record store."""

    name: str
    columns: tuple[str, ...]
    first_data_row: int = 2
    spreadsheet: str = ATTENDANCE
    cells: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def column_number(self, column: str) -> int:
        """1-based position of a named column."""
        try:
            return self.columns.index(column) + 1
        except ValueError:
            raise KeyError(f"Table {self.name!r} has no column {column!r}") from None

    def has_column(self, column: str) -> bool:
        return column in self.columns

    def records(self, rows: list[list]) -> list[dict]:
        """Map raw rows (including header rows) to dicts keyed by column name.

        Each dict carries the 1-based sheet row under ``"_row"``. Rows shorter
        than the layout are padded with empty strings; rows that are entirely
        blank are dropped.
        """
        out: list[dict] = []
        for offset, raw in enumerate(rows[self.first_data_row - 1:]):
            values = list(raw) + [""] * (len(self.columns) - len(raw))
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            record = {name: values[i] for i, name in enumerate(self.columns)}
            record["_row"] = self.first_data_row + offset
            out.append(record)
        return out

    def cell(self, rows: list[list], key: str):
        """Return the value of a named metadata cell, or "" when absent."""
        row, col = a1_to_rowcol(self.cells[key])
        if len(rows) < row or len(rows[row - 1]) < col:
            return ""
        return rows[row - 1][col - 1]

    def to_row(self, values: dict) -> list:
        """Order a dict of column values into a row for this layout."""
        return [values.get(name, "") for name in self.columns]


# ---------------------------------------------------------------------------
# Known tables
# ---------------------------------------------------------------------------

_PERSON_COLUMNS = ("person_id", "full_name", "first_name", "last_name", "email")

DIRECTORY = TableLayout(
    name="Directory",
    columns=_PERSON_COLUMNS,
    spreadsheet=DIRECTORY_BOOK,
)

NEW_MEMBER_FORM = TableLayout(
    name="New Member Form",
    columns=_PERSON_COLUMNS,
    spreadsheet=DIRECTORY_BOOK,
)

SERVICE_ATTENDANCE = TableLayout(
    name="Service Attendance",
    columns=(
        "person_id", "full_name", "first_name", "last_name", "service_date",
        "is_visitor", "email", "notes", "timestamp",
    ),
)

EVENT_ATTENDANCE = TableLayout(
    name="Event Attendance",
    columns=(
        "person_id", "full_name", "event_name", "event_id", "first_name",
        "last_name", "email", "phone", "form_sheet", "role", "event_date",
        "first_time", "needs_follow_up", "timestamp",
    ),
)

SUNDAY_REGISTRATION = TableLayout(
    name="Sunday Registration",
    columns=("person_id", "first_name", "last_name", "present"),
    first_data_row=6,
    cells={"date": "B2", "status": "D4"},
)

EVENT_REGISTRATION = TableLayout(
    name="Event Registration",
    columns=("person_id", "full_name", "first_name", "last_name", "present"),
    first_data_row=6,
    cells={"event_name": "A1", "date": "B2", "status": "D4"},
)

SUNDAY_SERVICE_FORM = TableLayout(
    name="Sunday Service",
    columns=(
        "person_id", "full_name", "first_name", "last_name", "timestamp",
        "first_time", "email",
    ),
)

_STATS_COLUMNS = (
    "person_id", "full_name", "first_name", "last_name",
    "trailing_window_events", "month_events", "volunteer_count",
    "last_attended_date", "last_event_name", "total_events",
)

ATTENDANCE_STATS = TableLayout(
    name="Attendance Stats",
    columns=_STATS_COLUMNS + ("prior_year_service_count", "activity_level", "guest_tag"),
)

SERVICE_STATS = TableLayout(
    name="Service Stats",
    columns=_STATS_COLUMNS + ("activity_level",),
    first_data_row=3,
)

ALL_TABLES = {
    layout.name: layout
    for layout in (
        DIRECTORY, NEW_MEMBER_FORM, SERVICE_ATTENDANCE, EVENT_ATTENDANCE,
        SUNDAY_REGISTRATION, EVENT_REGISTRATION, SUNDAY_SERVICE_FORM,
        ATTENDANCE_STATS, SERVICE_STATS,
    )
}


def table_by_name(name: str) -> TableLayout:
    """Look up a layout by its table name (case-insensitive)."""
    for layout_name, layout in ALL_TABLES.items():
        if layout_name.lower() == name.strip().lower():
            return layout
    raise KeyError(f"Unknown table: {name!r}")
