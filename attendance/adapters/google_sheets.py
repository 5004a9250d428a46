"""Google Sheets adapter — implements RecordStorePort for the Sheets API v4.

All Google-specific logic lives here. Core modules never import this directly;
they depend on the RecordStorePort protocol.

Each TableLayout names a worksheet (tab) inside one of two spreadsheets:
the attendance book or the directory book.
"""

from __future__ import annotations

import logging

from attendance.core.errors import ConfigurationMissing
from attendance.data.tables import (
    ATTENDANCE,
    DIRECTORY_BOOK,
    TableLayout,
    column_letter,
)
from attendance.ports.record_store_port import SourceUnavailable

logger = logging.getLogger(__name__)


def _sheet_range(layout: TableLayout, a1: str = "") -> str:
    quoted = "'" + layout.name.replace("'", "''") + "'"
    return f"{quoted}!{a1}" if a1 else quoted


class GoogleSheetsStore:
    """Google Sheets implementation of RecordStorePort.

    Args:
        service: A built Sheets v4 service. Built lazily via OAuth when omitted.
        attendance_spreadsheet_id / directory_spreadsheet_id: Default to settings.
    """

    def __init__(
        self,
        service=None,
        *,
        attendance_spreadsheet_id: str | None = None,
        directory_spreadsheet_id: str | None = None,
    ) -> None:
        from attendance.config import settings

        self._service = service
        self._spreadsheet_ids = {
            ATTENDANCE: (
                settings.ATTENDANCE_SPREADSHEET_ID
                if attendance_spreadsheet_id is None else attendance_spreadsheet_id
            ),
            DIRECTORY_BOOK: (
                settings.DIRECTORY_SPREADSHEET_ID
                if directory_spreadsheet_id is None else directory_spreadsheet_id
            ),
        }

    def _values(self):
        if self._service is None:
            from attendance.integrations.google_auth import get_sheets_service

            self._service = get_sheets_service()
        return self._service.spreadsheets().values()

    def _spreadsheet_id(self, layout: TableLayout) -> str:
        spreadsheet_id = self._spreadsheet_ids.get(layout.spreadsheet, "")
        if not spreadsheet_id:
            raise ConfigurationMissing(
                f"No spreadsheet id configured for the {layout.spreadsheet} book "
                f"(needed by '{layout.name}')"
            )
        return spreadsheet_id

    def read_rows(self, layout: TableLayout) -> list[list]:
        spreadsheet_id = self._spreadsheet_id(layout)
        values = self._values()
        try:
            result = (
                values
                .get(spreadsheetId=spreadsheet_id, range=_sheet_range(layout))
                .execute()
            )
        except Exception as exc:
            logger.error("Google Sheets API error reading '%s': %s", layout.name, exc)
            raise SourceUnavailable(f"Failed to read '{layout.name}': {exc}") from exc
        rows = result.get("values", [])
        logger.debug("Read %d row(s) from '%s'", len(rows), layout.name)
        return rows

    def append_rows(self, layout: TableLayout, rows: list[list]) -> None:
        if not rows:
            return
        spreadsheet_id = self._spreadsheet_id(layout)
        values = self._values()
        try:
            (
                values
                .append(
                    spreadsheetId=spreadsheet_id,
                    range=_sheet_range(layout, "A1"),
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body={"values": rows},
                )
                .execute()
            )
        except Exception as exc:
            logger.error("Google Sheets API error appending to '%s': %s", layout.name, exc)
            raise SourceUnavailable(f"Failed to append to '{layout.name}': {exc}") from exc
        logger.info("Appended %d row(s) to '%s'", len(rows), layout.name)

    def _update(self, layout: TableLayout, a1: str, values: list[list]) -> None:
        spreadsheet_id = self._spreadsheet_id(layout)
        values = self._values()
        try:
            (
                values
                .update(
                    spreadsheetId=spreadsheet_id,
                    range=_sheet_range(layout, a1),
                    valueInputOption="USER_ENTERED",
                    body={"values": values},
                )
                .execute()
            )
        except Exception as exc:
            logger.error("Google Sheets API error updating '%s'!%s: %s", layout.name, a1, exc)
            raise SourceUnavailable(f"Failed to update '{layout.name}'!{a1}: {exc}") from exc

    def update_cell(
        self, layout: TableLayout, row_number: int, column: str, value: object
    ) -> None:
        letter = column_letter(layout.column_number(column))
        self._update(layout, f"{letter}{row_number}", [[value]])

    def update_column(
        self, layout: TableLayout, column: str, start_row: int, values: list
    ) -> None:
        if not values:
            return
        letter = column_letter(layout.column_number(column))
        end_row = start_row + len(values) - 1
        self._update(layout, f"{letter}{start_row}:{letter}{end_row}", [[v] for v in values])

    def overwrite_rows(self, layout: TableLayout, rows: list[list]) -> None:
        spreadsheet_id = self._spreadsheet_id(layout)
        last_letter = column_letter(len(layout.columns))
        region = f"A{layout.first_data_row}:{last_letter}"
        values = self._values()
        try:
            (
                values
                .clear(spreadsheetId=spreadsheet_id, range=_sheet_range(layout, region), body={})
                .execute()
            )
        except Exception as exc:
            logger.error("Google Sheets API error clearing '%s': %s", layout.name, exc)
            raise SourceUnavailable(f"Failed to clear '{layout.name}': {exc}") from exc
        if rows:
            self._update(layout, f"A{layout.first_data_row}", rows)
        logger.info("Wrote %d row(s) to '%s'", len(rows), layout.name)
