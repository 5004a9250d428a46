"""
Attendance Tracker — Attendance Service.

Orchestrates the core for each intake path and for the stats refresh:
read tables -> build identity index -> resolve ids -> dedup -> append ->
aggregate -> flag -> write stats.

Each public method is one batch run. The identity index is built fresh for
every run and handed to the resolver; nothing is cached between runs.
Row-level problems are logged and counted as skipped; configuration
problems propagate to the caller.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import time
from datetime import date, datetime
from typing import TYPE_CHECKING, Callable, Iterable
from zoneinfo import ZoneInfo

from attendance.core import aggregator
from attendance.core.deduplicator import EventDeduplicator, wait_for_person_id
from attendance.core.errors import ConsistencyTimeout, InvalidInput
from attendance.core.flagger import directory_name_set, flag
from attendance.core.id_extractor import extract_numeric_id
from attendance.core.identity_index import build_identity_index, sources_from_names
from attendance.core.identity_resolver import IdentityResolver
from attendance.core.ledger import (
    SERVICE_EVENT_NAME,
    aggregate_to_row,
    event_to_row,
    format_timestamp,
    intake_record_to_event,
    ledger_events,
    ledger_layout,
    parse_moment,
    record_full_name,
)
from attendance.core.names import normalize_name, split_full_name
from attendance.data.models import (
    AttendanceAggregate,
    AttendanceEvent,
    EventCounters,
    FlagReport,
    LedgerKind,
    PersonIdentity,
    SubmissionResult,
)
from attendance.data.tables import (
    ATTENDANCE_STATS,
    DIRECTORY,
    EVENT_ATTENDANCE,
    EVENT_REGISTRATION,
    SERVICE_ATTENDANCE,
    SERVICE_STATS,
    SUNDAY_REGISTRATION,
    SUNDAY_SERVICE_FORM,
    TableLayout,
    a1_to_rowcol,
)
from attendance.ports.record_store_port import SourceUnavailable

if TYPE_CHECKING:
    from attendance.config import Settings
    from attendance.ports.record_store_port import RecordStorePort

logger = logging.getLogger(__name__)

WORKSHEETS = {
    "sunday": SUNDAY_REGISTRATION,
    "event": EVENT_REGISTRATION,
}

# Event titles on the registration sheet are often prefixed with an emoji.
_LEADING_DECORATION_RE = re.compile(r"^[^\w]+")


def _is_checked(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().upper() == "TRUE"


def _event_title(raw: object) -> str:
    return _LEADING_DECORATION_RE.sub("", str(raw or "")).strip()


class _LazyResolver:
    """Builds the identity index on first use, at most once per run."""

    def __init__(self, build: Callable[[], IdentityResolver]) -> None:
        self._build = build
        self._resolver: IdentityResolver | None = None

    def get(self) -> IdentityResolver:
        if self._resolver is None:
            self._resolver = self._build()
        return self._resolver


class AttendanceService:
    """Facade over the identity, dedup, aggregation and flagging core.

    Args:
        store: Row-oriented record store (Sheets or SQLite adapter).
        config: Settings to use; defaults to the process-wide settings.
        sleep: Used by the bounded id poll. Tests pass a no-op.
        clock: Returns "now"; defaults to the current time in TIMEZONE.
    """

    def __init__(
        self,
        store: RecordStorePort,
        *,
        config: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if config is None:
            from attendance.config import settings
            config = settings
        self._store = store
        self._settings = config
        self._sleep = sleep
        self._clock = clock or self._local_now

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _local_now(self) -> datetime:
        return datetime.now(ZoneInfo(self._settings.TIMEZONE)).replace(tzinfo=None)

    def _as_of(self, as_of: date | datetime | None) -> date:
        if as_of is None:
            return self._clock().date()
        return as_of.date() if isinstance(as_of, datetime) else as_of

    def _new_resolver(self) -> IdentityResolver:
        sources = sources_from_names(self._settings.IDENTITY_SOURCE_PRIORITY)
        return IdentityResolver(build_identity_index(self._store, sources))

    def _read_ledger(self, layout: TableLayout) -> list[AttendanceEvent]:
        return ledger_events(layout, self._store.read_rows(layout))

    def _with_person_ids(
        self, events: list[AttendanceEvent], resolver: _LazyResolver,
    ) -> list[AttendanceEvent]:
        """Resolve every named event's person id by name.

        The name decides, so rows that carry a stale or conflicting id for
        a known person still aggregate under that person's id. Events
        without a name keep whatever id the row holds.
        """
        out = []
        for event in events:
            if normalize_name(event.full_name):
                person_id = resolver.get().resolve(event.full_name).id
                if person_id != event.person_id:
                    if event.person_id is not None:
                        logger.info(
                            "Row %s: id %s for '%s' replaced by %d",
                            event.row_number, event.person_id, event.full_name, person_id,
                        )
                    event = dataclasses.replace(event, person_id=person_id)
            out.append(event)
        return out

    def _ledgers(self) -> tuple[list[AttendanceEvent], list[AttendanceEvent]]:
        """(service events, event-ledger events) with ids resolved by name."""
        resolver = _LazyResolver(self._new_resolver)
        service = self._with_person_ids(self._read_ledger(SERVICE_ATTENDANCE), resolver)
        events = self._with_person_ids(self._read_ledger(EVENT_ATTENDANCE), resolver)
        return service, events

    def _aggregate(
        self, events: list[AttendanceEvent], as_of: date,
        service_events: list[AttendanceEvent] | None = None,
    ) -> list[AttendanceAggregate]:
        s = self._settings
        return aggregator.aggregate(
            events, as_of,
            service_events=service_events,
            trailing_months=s.TRAILING_WINDOW_MONTHS,
            core_threshold=s.CORE_THRESHOLD,
            active_threshold=s.ACTIVE_THRESHOLD,
            archive_after_months=s.ARCHIVE_AFTER_MONTHS,
        )

    def _directory_names(self) -> set[str]:
        try:
            return directory_name_set(DIRECTORY, self._store.read_rows(DIRECTORY))
        except SourceUnavailable as exc:
            logger.warning("Directory unavailable, guest tags cleared: %s", exc)
            return set()

    def _record_at(self, layout: TableLayout, row_number: int) -> dict:
        for record in layout.records(self._store.read_rows(layout)):
            if record["_row"] == row_number:
                return record
        raise InvalidInput(f"{layout.name} has no data in row {row_number}")

    def _write_named_cell(self, layout: TableLayout, key: str, value: object) -> None:
        row, col = a1_to_rowcol(layout.cells[key])
        self._store.update_cell(layout, row, layout.columns[col - 1], value)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def resolve_identity(self, name: str) -> PersonIdentity:
        """Resolve one name against a freshly built identity index."""
        return self._new_resolver().resolve(name)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit_events(
        self,
        candidates: Iterable[AttendanceEvent],
        *,
        resolver: IdentityResolver | None = None,
    ) -> SubmissionResult:
        """Resolve ids, dedup and append candidates to their canonical ledgers.

        Candidates without a person id are resolved by name. Candidates that
        cannot be resolved or dated, or that are already in the ledger, are
        skipped and logged.
        """
        lazy = _LazyResolver(lambda: resolver or self._new_resolver())
        dedupers: dict[LedgerKind, EventDeduplicator] = {}
        pending: dict[LedgerKind, list[list]] = {}
        result = SubmissionResult()

        for candidate in candidates:
            result.total += 1
            if candidate.person_id is None:
                try:
                    identity = lazy.get().resolve(candidate.full_name)
                except InvalidInput as exc:
                    logger.warning("Skipping candidate: %s", exc)
                    result.skipped += 1
                    continue
                candidate = dataclasses.replace(
                    candidate,
                    person_id=identity.id,
                    full_name=identity.full_name,
                    first_name=candidate.first_name or identity.first_name,
                    last_name=candidate.last_name or identity.last_name,
                    email=candidate.email or identity.email,
                )
            elif candidate.person_id < 0:
                logger.warning(
                    "Skipping '%s': invalid person id %r", candidate.full_name, candidate.person_id,
                )
                result.skipped += 1
                continue

            deduper = dedupers.get(candidate.ledger)
            if deduper is None:
                deduper = EventDeduplicator(self._read_ledger(ledger_layout(candidate.ledger)))
                dedupers[candidate.ledger] = deduper
            if not deduper.should_insert(candidate):
                result.skipped += 1
                continue

            pending.setdefault(candidate.ledger, []).append(event_to_row(candidate))
            result.inserted += 1

        for kind, rows in pending.items():
            self._store.append_rows(ledger_layout(kind), rows)

        logger.info(
            "Submission complete: %d inserted, %d skipped, %d total",
            result.inserted, result.skipped, result.total,
        )
        return result

    def submit_worksheet(self, kind: str) -> SubmissionResult:
        """Submit the checked rows of a registration worksheet.

        Args:
            kind: "sunday" (service ledger) or "event" (event ledger).

        Rows without a valid numeric id are left out of the batch entirely.
        Checkboxes are cleared and a status line written after a submission.
        """
        layout = WORKSHEETS.get(kind.lower())
        if layout is None:
            raise ValueError(f"Unknown worksheet kind: {kind!r}")

        rows = self._store.read_rows(layout)
        event_date, _ = parse_moment(layout.cell(rows, "date"))
        if event_date is None:
            raise InvalidInput(f"{layout.name}: no valid date in {layout.cells['date']}")

        if layout is EVENT_REGISTRATION:
            ledger = LedgerKind.EVENT
            event_name = _event_title(layout.cell(rows, "event_name"))
            if not event_name:
                raise InvalidInput(f"{layout.name}: no event name in {layout.cells['event_name']}")
        else:
            ledger = LedgerKind.SERVICE
            event_name = SERVICE_EVENT_NAME

        resolver = self._new_resolver()
        directory = resolver.index.directory
        now = self._clock()

        candidates: list[AttendanceEvent] = []
        excluded = 0
        records = layout.records(rows)
        for record in records:
            if not _is_checked(record.get("present")):
                continue
            full_name = record_full_name(record)
            person_id = extract_numeric_id(record.get("person_id"))
            if person_id is None or not full_name:
                logger.warning(
                    "%s row %d: missing name or invalid id %r, excluded",
                    layout.name, record["_row"], record.get("person_id"),
                )
                excluded += 1
                continue

            first_name = str(record.get("first_name") or "").strip()
            last_name = str(record.get("last_name") or "").strip()
            if not first_name and not last_name:
                first_name, last_name = split_full_name(full_name)
            entry = directory.get(normalize_name(full_name))
            candidates.append(AttendanceEvent(
                person_id=person_id,
                full_name=full_name,
                event_name=event_name,
                event_date=event_date,
                ledger=ledger,
                recorded_at=now,
                first_name=first_name,
                last_name=last_name,
                email=entry.email if entry else "",
            ))

        if not candidates:
            logger.info("%s: nothing to submit (%d excluded)", layout.name, excluded)
            return SubmissionResult()

        result = self.submit_events(candidates, resolver=resolver)

        if records:
            last_row = records[-1]["_row"]
            self._store.update_column(
                layout, "present", layout.first_data_row,
                [False] * (last_row - layout.first_data_row + 1),
            )
        self._write_named_cell(
            layout, "status",
            f"Submitted {result.inserted} of {result.total} on {format_timestamp(now)}",
        )
        logger.info(
            "%s submitted for %s: %d inserted, %d skipped, %d excluded",
            layout.name, event_date, result.inserted, result.skipped, excluded,
        )
        return result

    def combine_intake_names(self, row_number: int) -> str:
        """Fill the form row's full name from first + last when it is blank."""
        layout = SUNDAY_SERVICE_FORM
        record = self._record_at(layout, row_number)
        existing = " ".join(str(record.get("full_name") or "").split())
        if existing:
            return existing
        combined = record_full_name(record)
        if combined:
            self._store.update_cell(layout, row_number, "full_name", combined)
            logger.info("%s row %d: full name set to '%s'", layout.name, row_number, combined)
        return combined

    def assign_intake_ids(self, row_numbers: Iterable[int] | None = None) -> int:
        """Resolve ids for form rows and write those that differ.

        Returns the number of id cells written.
        """
        layout = SUNDAY_SERVICE_FORM
        wanted = set(row_numbers) if row_numbers is not None else None
        resolver = self._new_resolver()
        written = 0
        for record in layout.records(self._store.read_rows(layout)):
            if wanted is not None and record["_row"] not in wanted:
                continue
            full_name = record_full_name(record)
            if not full_name:
                logger.debug("%s row %d: no name, id not assigned", layout.name, record["_row"])
                continue
            identity = resolver.resolve(full_name)
            if extract_numeric_id(record.get("person_id")) != identity.id:
                self._store.update_cell(layout, record["_row"], "person_id", identity.id)
                written += 1
        logger.info("%s: %d id(s) assigned", layout.name, written)
        return written

    def transfer_form_submission(self, row_number: int) -> bool:
        """Copy one form row into the service ledger once its id is present.

        Returns True when the row was appended; False when it timed out,
        had a non-numeric id, or was a duplicate.
        """
        layout = SUNDAY_SERVICE_FORM
        label = f"{layout.name} row {row_number}"
        try:
            raw_id = wait_for_person_id(
                lambda: self._record_at(layout, row_number).get("person_id"),
                retries=self._settings.ID_POLL_RETRIES,
                delay_seconds=self._settings.ID_POLL_DELAY_SECONDS,
                sleep=self._sleep,
                label=label,
            )
        except ConsistencyTimeout as exc:
            logger.warning("Transfer skipped: %s", exc)
            return False

        person_id = extract_numeric_id(raw_id)
        if person_id is None:
            logger.warning("Transfer skipped: %s has non-numeric id %r", label, raw_id)
            return False

        event = intake_record_to_event(self._record_at(layout, row_number))
        event = dataclasses.replace(event, person_id=person_id)
        return self.submit_events([event]).inserted == 1

    def handle_form_submission(self, row_number: int) -> bool:
        """Full form-submit path: combine names, assign the id, transfer."""
        self.combine_intake_names(row_number)
        self.assign_intake_ids([row_number])
        return self.transfer_form_submission(row_number)

    def pull_intake_to_ledger(self) -> SubmissionResult:
        """Bulk-copy every complete form row into the service ledger."""
        layout = SUNDAY_SERVICE_FORM
        complete: list[AttendanceEvent] = []
        incomplete = 0
        for record in layout.records(self._store.read_rows(layout)):
            event = intake_record_to_event(record)
            if event.person_id is None or not event.full_name or event.event_date is None:
                logger.debug("%s row %d incomplete, not pulled", layout.name, record["_row"])
                incomplete += 1
                continue
            complete.append(event)

        result = self.submit_events(complete)
        result.skipped += incomplete
        result.total += incomplete
        logger.info(
            "Pulled %s into %s: %d inserted, %d skipped (%d incomplete)",
            layout.name, SERVICE_ATTENDANCE.name, result.inserted, result.skipped, incomplete,
        )
        return result

    # ------------------------------------------------------------------
    # Aggregation & flags
    # ------------------------------------------------------------------

    def recompute_aggregates(self, as_of: date | datetime | None = None) -> list[AttendanceAggregate]:
        """Rebuild every person's statistics from both ledgers."""
        as_of = self._as_of(as_of)
        service, events = self._ledgers()
        return self._aggregate(service + events, as_of, service_events=service)

    def compute_flags(self, as_of: date | datetime | None = None) -> FlagReport:
        """First-time / follow-up flags for the event ledger plus guest tags."""
        as_of = self._as_of(as_of)
        service, events = self._ledgers()
        aggregates = self._aggregate(service + events, as_of, service_events=service)
        return flag(
            events, aggregates, self._directory_names(), as_of,
            follow_up_days=self._settings.FOLLOW_UP_THRESHOLD_DAYS,
        )

    def refresh_stats(self, as_of: date | datetime | None = None) -> list[AttendanceAggregate]:
        """Recompute and write Attendance Stats, Service Stats and ledger flags.

        Changes against the previously written Attendance Stats are logged
        per person before the table is overwritten.
        """
        as_of = self._as_of(as_of)
        service, events = self._ledgers()
        aggregates = self._aggregate(service + events, as_of, service_events=service)
        report = flag(
            events, aggregates, self._directory_names(), as_of,
            follow_up_days=self._settings.FOLLOW_UP_THRESHOLD_DAYS,
        )
        aggregates = [
            dataclasses.replace(a, guest_tag=report.per_person_guest_tags.get(a.person_id, ""))
            for a in aggregates
        ]

        try:
            previous = aggregator.previous_stats(
                ATTENDANCE_STATS.records(self._store.read_rows(ATTENDANCE_STATS))
            )
        except SourceUnavailable as exc:
            logger.warning("Previous stats unreadable, change log skipped: %s", exc)
            previous = {}
        changes = aggregator.diff_aggregates(previous, aggregates)
        for person_id, diffs in changes.items():
            logger.info("Stats for id %d: %s", person_id, "; ".join(diffs))
        logger.info("%d of %d stats record(s) changed", len(changes), len(aggregates))

        self._store.overwrite_rows(
            ATTENDANCE_STATS, [aggregate_to_row(a, ATTENDANCE_STATS) for a in aggregates],
        )
        service_aggregates = self._aggregate(service, as_of, service_events=service)
        self._store.overwrite_rows(
            SERVICE_STATS, [aggregate_to_row(a, SERVICE_STATS) for a in service_aggregates],
        )
        self._write_event_flags(report)
        return aggregates

    def _write_event_flags(self, report: FlagReport) -> None:
        flagged = [f for f in report.per_event_flags if f.row_number is not None]
        if not flagged:
            return
        start = EVENT_ATTENDANCE.first_data_row
        size = max(f.row_number for f in flagged) - start + 1
        first_time = [""] * size
        follow_up = [""] * size
        for f in flagged:
            first_time[f.row_number - start] = "YES" if f.first_time else ""
            follow_up[f.row_number - start] = "YES" if f.needs_follow_up else ""
        self._store.update_column(EVENT_ATTENDANCE, "first_time", start, first_time)
        self._store.update_column(EVENT_ATTENDANCE, "needs_follow_up", start, follow_up)

    def event_counters(
        self, event_name: str, as_of: date | datetime | None = None,
    ) -> EventCounters:
        """Month-to-date and per-event attendee counters from the event ledger."""
        as_of = self._as_of(as_of)
        return aggregator.event_counters(self._read_ledger(EVENT_ATTENDANCE), event_name, as_of)
