"""Tests for the identity index builder and resolver."""

import pytest

from attendance.core.errors import ConfigurationMissing, InvalidInput
from attendance.core.identity_index import (
    IdentityIndex,
    IdentitySource,
    add_source_rows,
    build_identity_index,
    sources_from_names,
)
from attendance.core.identity_resolver import IdentityResolver
from attendance.data.tables import (
    DIRECTORY,
    EVENT_ATTENDANCE,
    SERVICE_ATTENDANCE,
    SUNDAY_REGISTRATION,
)
from attendance.ports.record_store_port import SourceUnavailable


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory read-only store; tables listed in `broken` raise on read."""

    def __init__(self, tables, broken=(), missing_config=()):
        self.tables = tables
        self.broken = set(broken)
        self.missing_config = set(missing_config)

    def read_rows(self, layout):
        if layout.name in self.missing_config:
            raise ConfigurationMissing(f"no spreadsheet for {layout.name}")
        if layout.name in self.broken:
            raise SourceUnavailable(f"{layout.name} is gone")
        return self.tables.get(layout.name, [])


def _directory(*rows):
    return [list(DIRECTORY.columns), *rows]


def _worksheet(*rows):
    return [[""]] * (SUNDAY_REGISTRATION.first_data_row - 1) + list(rows)


def _service(*rows):
    return [list(SERVICE_ATTENDANCE.columns), *rows]


def _sources(*layouts):
    return [IdentitySource(label=layout.name, layout=layout) for layout in layouts]


# ---------------------------------------------------------------------------
# Index builder
# ---------------------------------------------------------------------------


class TestBuildIdentityIndex:
    def test_higher_priority_source_wins(self):
        store = FakeStore({
            "Directory": _directory(["10", "John Smith", "John", "Smith", "js@example.com"]),
            "Sunday Registration": _worksheet(["77", "John", "Smith", False]),
        })
        index = build_identity_index(store, _sources(DIRECTORY, SUNDAY_REGISTRATION))
        assert index.lookup("John Smith") == 10
        assert index.max_used_id == 77
        assert {10, 77} <= index.used_ids

    def test_priority_order_is_respected_when_reversed(self):
        store = FakeStore({
            "Directory": _directory(["10", "John Smith", "John", "Smith", ""]),
            "Sunday Registration": _worksheet(["77", "John", "Smith", False]),
        })
        index = build_identity_index(store, _sources(SUNDAY_REGISTRATION, DIRECTORY))
        assert index.lookup("john  smith") == 77

    def test_invalid_ids_are_not_mapped(self):
        store = FakeStore({
            "Directory": _directory(["BEL123", "Jane Doe", "Jane", "Doe", ""]),
            "Service Attendance": _service(["42", "Jane Doe", "Jane", "Doe", "10/04/2026", "", "", "", ""]),
        })
        index = build_identity_index(store, _sources(DIRECTORY, SERVICE_ATTENDANCE))
        assert index.lookup("Jane Doe") == 42

    def test_ids_on_nameless_rows_still_count_as_used(self):
        store = FakeStore({
            "Directory": _directory(["5", "Ann Lee", "Ann", "Lee", ""], ["300", "", "", "", ""]),
        })
        index = build_identity_index(store, _sources(DIRECTORY))
        assert index.max_used_id == 300
        assert 300 in index.used_ids

    def test_unavailable_source_is_skipped(self):
        store = FakeStore(
            {"Directory": _directory(["10", "John Smith", "John", "Smith", ""])},
            broken={"Event Attendance"},
        )
        index = build_identity_index(store, _sources(DIRECTORY, EVENT_ATTENDANCE))
        assert index.lookup("John Smith") == 10
        assert index.unavailable_sources == ["Event Attendance"]

    def test_missing_configuration_propagates(self):
        store = FakeStore({}, missing_config={"Directory"})
        with pytest.raises(ConfigurationMissing):
            build_identity_index(store, _sources(DIRECTORY, SERVICE_ATTENDANCE))

    def test_directory_entries_are_collected(self):
        store = FakeStore({
            "Directory": _directory(["10", "John Smith", "John", "Smith", "js@example.com"]),
        })
        index = build_identity_index(store, _sources(DIRECTORY))
        assert index.directory["john smith"].email == "js@example.com"

    def test_header_rows_are_not_names(self):
        index = IdentityIndex()
        add_source_rows(index, _sources(DIRECTORY)[0], _directory())
        assert index.name_to_id == {}


class TestSourcesFromNames:
    def test_builds_layouts_in_order(self):
        sources = sources_from_names(["Directory", "service attendance"])
        assert [s.layout for s in sources] == [DIRECTORY, SERVICE_ATTENDANCE]

    def test_unknown_table_is_a_configuration_error(self):
        with pytest.raises(ConfigurationMissing, match="Nope"):
            sources_from_names(["Directory", "Nope"])


# ---------------------------------------------------------------------------
# Minting
# ---------------------------------------------------------------------------


class TestMint:
    def test_mints_after_max(self):
        index = IdentityIndex()
        index.observe_id(8)
        assert index.mint("New Person") == 9
        assert index.max_used_id == 9

    def test_same_name_same_id(self):
        index = IdentityIndex()
        first = index.mint("New Person")
        assert index.mint(" new   PERSON ") == first

    def test_ids_are_monotonic(self):
        index = IdentityIndex()
        index.observe_id(3)
        ids = [index.mint(f"Person {n}") for n in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5
        assert min(ids) > 3


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TestIdentityResolver:
    def _resolver(self):
        store = FakeStore({
            "Directory": _directory(["10", "John Smith", "Johnny", "Smith", "js@example.com"]),
            "Service Attendance": _service(["25", "Jane Doe", "Jane", "Doe", "10/04/2026", "", "", "", ""]),
        })
        return IdentityResolver(build_identity_index(store, _sources(DIRECTORY, SERVICE_ATTENDANCE)))

    def test_known_directory_name_is_enriched(self):
        identity = self._resolver().resolve("  john SMITH ")
        assert identity.id == 10
        assert identity.first_name == "Johnny"
        assert identity.email == "js@example.com"
        assert identity.full_name == "John Smith"

    def test_directory_spelling_wins_over_input_spelling(self):
        identity = self._resolver().resolve("  JOHN   smith ")
        assert identity.full_name == "John Smith"
        assert (identity.first_name, identity.last_name) == ("Johnny", "Smith")

    def test_non_directory_name_keeps_collapsed_input(self):
        assert self._resolver().resolve("  Brand   New ").full_name == "Brand New"

    def test_known_non_directory_name_is_split(self):
        identity = self._resolver().resolve("Jane Doe")
        assert identity.id == 25
        assert (identity.first_name, identity.last_name) == ("Jane", "Doe")
        assert identity.email == ""

    def test_unknown_name_gets_next_id(self):
        resolver = self._resolver()
        assert resolver.resolve("Brand New").id == 26

    def test_unseen_name_twice_in_one_run_shares_an_id(self):
        resolver = self._resolver()
        first = resolver.resolve("Brand New")
        second = resolver.resolve("brand new")
        assert first.id == second.id
        assert resolver.resolve("Another One").id == first.id + 1

    def test_empty_name_raises(self):
        with pytest.raises(InvalidInput):
            self._resolver().resolve("   ")
