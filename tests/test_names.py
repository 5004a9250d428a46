"""Tests for attendance.core.names."""

from attendance.core.names import combine_names, normalize_name, split_full_name


class TestNormalizeName:
    def test_trims_collapses_and_casefolds(self):
        assert normalize_name("  Jane   DOE ") == "jane doe"

    def test_tabs_and_newlines_collapse(self):
        assert normalize_name("Jane\t\nDoe") == "jane doe"

    def test_none_and_blank(self):
        assert normalize_name(None) == ""
        assert normalize_name("   ") == ""

    def test_non_string_is_stringified(self):
        assert normalize_name(42) == "42"


class TestSplitFullName:
    def test_first_token_and_rest(self):
        assert split_full_name("Mary Ann Smith") == ("Mary", "Ann Smith")

    def test_single_token(self):
        assert split_full_name("Cher") == ("Cher", "")

    def test_empty(self):
        assert split_full_name("") == ("", "")


class TestCombineNames:
    def test_both_present(self):
        assert combine_names(" Jane ", "Doe") == "Jane Doe"

    def test_missing_part_gives_empty(self):
        assert combine_names("Jane", "") == ""
        assert combine_names(None, "Doe") == ""
