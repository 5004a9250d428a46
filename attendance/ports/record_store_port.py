"""Record store port — abstract interface for row-oriented table storage.

Core modules depend on this protocol, never on a specific provider.
Rows are lists of cell values; row numbers are 1-based, as in a sheet.
"""

from __future__ import annotations

from typing import Protocol

from attendance.data.tables import TableLayout


class SourceUnavailable(Exception):
    """Raised when a table cannot be read from or written to the store."""


class RecordStorePort(Protocol):
    """Abstract table store used by core modules."""

    def read_rows(self, layout: TableLayout) -> list[list]: ...

    def append_rows(self, layout: TableLayout, rows: list[list]) -> None: ...

    def update_cell(
        self, layout: TableLayout, row_number: int, column: str, value: object
    ) -> None: ...

    def update_column(
        self, layout: TableLayout, column: str, start_row: int, values: list
    ) -> None: ...

    def overwrite_rows(
        self, layout: TableLayout, rows: list[list]
    ) -> None: ...
