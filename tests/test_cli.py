"""Tests for attendance.cli."""

from unittest.mock import patch

import pytest

from attendance.cli import build_parser, main
from attendance.data.tables import ATTENDANCE_STATS, DIRECTORY, SERVICE_ATTENDANCE


@pytest.fixture
def populated(store, seed):
    seed(DIRECTORY, [["10", "John Smith", "John", "Smith", "john@example.com"]])
    seed(SERVICE_ATTENDANCE, [
        ["10", "John Smith", "John", "Smith", "10/11/2026", "No", "", "", ""],
        ["", "Visitor Vic", "Visitor", "Vic", "10/11/2026", "No", "", "", ""],
    ])
    return store


class TestParser:
    def test_requires_a_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_bad_as_of(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["refresh", "--as-of", "18/10/2026"])

    def test_worksheet_kind_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["submit-worksheet", "weekday"])


class TestCommands:
    def test_resolve(self, populated, capsys):
        assert main(["resolve", "john smith"], store=populated) == 0
        assert capsys.readouterr().out.startswith("10\tJohn Smith")

    def test_refresh_writes_stats(self, populated, capsys):
        assert main(["refresh", "--as-of", "2026-10-18"], store=populated) == 0
        out = capsys.readouterr().out
        assert "2 stats record(s) written" in out
        assert "Guest (need to add in Directory)" in out
        assert len(ATTENDANCE_STATS.records(populated.read_rows(ATTENDANCE_STATS))) == 2

    def test_counters(self, populated, capsys):
        assert main(["counters", "Picnic", "--as-of", "2026-10-18"], store=populated) == 0
        assert "This event: 0" in capsys.readouterr().out

    def test_errors_return_nonzero(self, populated, capsys):
        assert main(["resolve", "   "], store=populated) == 1
        assert "Error:" in capsys.readouterr().out

    def test_unknown_identity_source_returns_nonzero(self, populated, capsys):
        from attendance.config import settings

        with patch.object(settings, "IDENTITY_SOURCE_PRIORITY", ["Directory", "Nope"]):
            assert main(["resolve", "john smith"], store=populated) == 1
        assert "Unknown identity source 'Nope'" in capsys.readouterr().out

    def test_uses_factory_when_no_store_given(self, populated):
        with patch("attendance.adapters.store_factory.create_record_store", return_value=populated) as factory:
            assert main(["pull-intake"]) == 0
        factory.assert_called_once()
