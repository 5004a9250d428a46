"""
Attendance Tracker — Identity Index Builder.

Scans every person-bearing table in priority order and builds the run-scoped
identity state: which id each known name maps to, which ids are already in
use, and the directory details used to enrich resolved identities.

The index is the only place new ids are minted. It is built fresh for each
run and passed explicitly to whoever needs it; nothing here is global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from attendance.core.errors import ConfigurationMissing
from attendance.core.id_extractor import extract_numeric_id
from attendance.core.ledger import directory_entries, record_full_name
from attendance.core.names import normalize_name
from attendance.data.models import DirectoryEntry
from attendance.data.tables import DIRECTORY, TableLayout, table_by_name
from attendance.ports.record_store_port import SourceUnavailable

if TYPE_CHECKING:
    from attendance.ports.record_store_port import RecordStorePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentitySource:
    """One table consulted for name → id mappings."""

    label: str
    layout: TableLayout


@dataclass
class IdentityIndex:
    """Name → id map plus the used id space for one run."""

    name_to_id: dict[str, int] = field(default_factory=dict)
    used_ids: set[int] = field(default_factory=set)
    max_used_id: int = 0
    directory: dict[str, DirectoryEntry] = field(default_factory=dict)
    unavailable_sources: list[str] = field(default_factory=list)

    def lookup(self, name: str) -> int | None:
        return self.name_to_id.get(normalize_name(name))

    def observe_id(self, person_id: int) -> None:
        self.used_ids.add(person_id)
        if person_id > self.max_used_id:
            self.max_used_id = person_id

    def mint(self, name: str) -> int:
        """Assign the next id to an unseen name and remember it for this run."""
        key = normalize_name(name)
        if key in self.name_to_id:
            return self.name_to_id[key]
        new_id = self.max_used_id + 1
        while new_id in self.used_ids:
            new_id += 1
        self.observe_id(new_id)
        self.name_to_id[key] = new_id
        logger.info("Minted new person id %d for '%s'", new_id, name)
        return new_id


def sources_from_names(table_names: list[str]) -> list[IdentitySource]:
    """Build an ordered source list from table names (e.g. from settings).

    Raises ConfigurationMissing when a name matches no known table.
    """
    sources = []
    for name in table_names:
        try:
            layout = table_by_name(name)
        except KeyError:
            raise ConfigurationMissing(
                f"Unknown identity source {name!r} in IDENTITY_SOURCE_PRIORITY"
            ) from None
        sources.append(IdentitySource(label=name, layout=layout))
    return sources


def add_source_rows(index: IdentityIndex, source: IdentitySource, rows: list[list]) -> None:
    """Fold one source's rows into the index.

    Sources must be added highest priority first: a name already mapped by
    an earlier source keeps its id. Every valid id is counted as used, even
    on rows without a name.
    """
    layout = source.layout
    mapped = 0
    for record in layout.records(rows):
        person_id = extract_numeric_id(record.get("person_id"))
        if person_id is None:
            raw = record.get("person_id")
            if raw not in (None, ""):
                logger.debug(
                    "%s row %s: id %r is not numeric, ignored", source.label, record["_row"], raw,
                )
            continue
        index.observe_id(person_id)

        key = normalize_name(record_full_name(record))
        if not key:
            continue
        if key not in index.name_to_id:
            index.name_to_id[key] = person_id
            mapped += 1

    if layout == DIRECTORY:
        index.directory.update(
            {k: v for k, v in directory_entries(layout, rows).items() if k not in index.directory}
        )

    logger.info(
        "Identity source '%s': %d new name mappings (index size %d, max id %d)",
        source.label, mapped, len(index.name_to_id), index.max_used_id,
    )


def build_identity_index(
    store: RecordStorePort, sources: list[IdentitySource],
) -> IdentityIndex:
    """Read every source in priority order and build the run's IdentityIndex.

    Unreadable sources are logged and skipped so resolution degrades rather
    than halts. ConfigurationMissing from the store is not caught.
    """
    index = IdentityIndex()
    for source in sources:
        try:
            rows = store.read_rows(source.layout)
        except SourceUnavailable as exc:
            logger.warning("Identity source '%s' unavailable, skipping: %s", source.label, exc)
            index.unavailable_sources.append(source.label)
            continue
        add_source_rows(index, source, rows)

    logger.info(
        "Identity index built: %d names, %d used ids, max id %d",
        len(index.name_to_id), len(index.used_ids), index.max_used_id,
    )
    return index
