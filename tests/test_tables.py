"""Tests for attendance.data.tables — layouts and A1 helpers."""

import pytest

from attendance.data.tables import (
    EVENT_REGISTRATION,
    SERVICE_ATTENDANCE,
    a1_to_rowcol,
    column_letter,
    table_by_name,
)


def test_a1_to_rowcol():
    assert a1_to_rowcol("B2") == (2, 2)
    assert a1_to_rowcol("aa10") == (10, 27)


def test_a1_rejects_garbage():
    with pytest.raises(ValueError):
        a1_to_rowcol("2B")


def test_column_letter():
    assert column_letter(1) == "A"
    assert column_letter(26) == "Z"
    assert column_letter(27) == "AA"


def test_records_skip_header_and_blank_rows():
    rows = [list(SERVICE_ATTENDANCE.columns), ["1", "Ann Lee"], ["", "  "], ["2"]]
    records = SERVICE_ATTENDANCE.records(rows)
    assert [r["_row"] for r in records] == [2, 4]
    assert records[0]["service_date"] == ""


def test_metadata_cells():
    rows = [["Picnic"], ["Date", "10/11/2026"]]
    assert EVENT_REGISTRATION.cell(rows, "event_name") == "Picnic"
    assert EVENT_REGISTRATION.cell(rows, "date") == "10/11/2026"
    assert EVENT_REGISTRATION.cell(rows, "status") == ""


def test_column_number():
    assert SERVICE_ATTENDANCE.column_number("person_id") == 1
    with pytest.raises(KeyError):
        SERVICE_ATTENDANCE.column_number("nope")


def test_table_by_name_is_case_insensitive():
    assert table_by_name(" service attendance ") is SERVICE_ATTENDANCE
    with pytest.raises(KeyError):
        table_by_name("Unknown")
