"""
Attendance Tracker — SQLite record store.

Implements RecordStorePort on a single SQLite file so the engine can run
locally and in tests. Each table is a set of numbered rows; a row holds its
cells as a JSON list, mirroring a worksheet row for row.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from attendance.data.tables import TableLayout

logger = logging.getLogger(__name__)


class SqliteRecordStore:
    """SQLite-backed implementation of RecordStorePort."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from attendance.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the rows table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS table_rows (
                    table_name  TEXT    NOT NULL,
                    row_number  INTEGER NOT NULL,
                    cells       TEXT    NOT NULL,
                    PRIMARY KEY (table_name, row_number)
                )
            """)
        logger.debug("Record store initialized at %s", self._db_path)

    @staticmethod
    def _dump(values: list) -> str:
        return json.dumps(list(values), default=str)

    def _row(self, conn: sqlite3.Connection, layout: TableLayout, row_number: int) -> list:
        found = conn.execute(
            "SELECT cells FROM table_rows WHERE table_name = ? AND row_number = ?",
            (layout.name, row_number),
        ).fetchone()
        return json.loads(found["cells"]) if found else []

    def _put(self, conn: sqlite3.Connection, layout: TableLayout, row_number: int, values: list) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO table_rows (table_name, row_number, cells) VALUES (?, ?, ?)",
            (layout.name, row_number, self._dump(values)),
        )

    def read_rows(self, layout: TableLayout) -> list[list]:
        with self._connect() as conn:
            found = conn.execute(
                "SELECT row_number, cells FROM table_rows WHERE table_name = ? ORDER BY row_number",
                (layout.name,),
            ).fetchall()
        if not found:
            return []
        rows: list[list] = [[] for _ in range(found[-1]["row_number"])]
        for r in found:
            rows[r["row_number"] - 1] = json.loads(r["cells"])
        return rows

    def append_rows(self, layout: TableLayout, rows: list[list]) -> None:
        if not rows:
            return
        with self._connect() as conn:
            last = conn.execute(
                "SELECT MAX(row_number) AS last FROM table_rows WHERE table_name = ?",
                (layout.name,),
            ).fetchone()["last"] or 0
            next_row = max(last, layout.first_data_row - 1) + 1
            for offset, values in enumerate(rows):
                self._put(conn, layout, next_row + offset, values)
        logger.info("Appended %d row(s) to '%s'", len(rows), layout.name)

    def update_cell(
        self, layout: TableLayout, row_number: int, column: str, value: object
    ) -> None:
        self.update_column(layout, column, row_number, [value])

    def update_column(
        self, layout: TableLayout, column: str, start_row: int, values: list
    ) -> None:
        index = layout.column_number(column) - 1
        with self._connect() as conn:
            for offset, value in enumerate(values):
                row_number = start_row + offset
                cells = self._row(conn, layout, row_number)
                if len(cells) <= index:
                    cells.extend([""] * (index + 1 - len(cells)))
                cells[index] = value
                self._put(conn, layout, row_number, cells)

    def overwrite_rows(self, layout: TableLayout, rows: list[list]) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM table_rows WHERE table_name = ? AND row_number >= ?",
                (layout.name, layout.first_data_row),
            )
            for offset, values in enumerate(rows):
                self._put(conn, layout, layout.first_data_row + offset, values)
        logger.info("Wrote %d row(s) to '%s'", len(rows), layout.name)
