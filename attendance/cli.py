"""Command-line front end for the attendance engine.

Each subcommand runs one batch operation of AttendanceService against the
configured record store and prints a short summary.
"""

from __future__ import annotations

import argparse
import logging
from datetime import date, datetime

from attendance.core.attendance_service import WORKSHEETS, AttendanceService
from attendance.core.errors import AttendanceError
from attendance.core.ledger import format_date
from attendance.ports.record_store_port import RecordStorePort, SourceUnavailable

logger = logging.getLogger(__name__)


def _as_of(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from None


def _print_submission(label: str, result) -> None:
    print(f"{label}: {result.inserted} inserted, {result.skipped} skipped, {result.total} total")


def handle_resolve(service: AttendanceService, args: argparse.Namespace) -> None:
    identity = service.resolve_identity(args.name)
    print(f"{identity.id}\t{identity.full_name}\t{identity.email}")


def handle_submit_worksheet(service: AttendanceService, args: argparse.Namespace) -> None:
    _print_submission(f"{args.kind} worksheet", service.submit_worksheet(args.kind))


def handle_form_submit(service: AttendanceService, args: argparse.Namespace) -> None:
    moved = service.handle_form_submission(args.row)
    print(f"Row {args.row}: {'transferred' if moved else 'not transferred'}")


def handle_transfer(service: AttendanceService, args: argparse.Namespace) -> None:
    moved = service.transfer_form_submission(args.row)
    print(f"Row {args.row}: {'transferred' if moved else 'not transferred'}")


def handle_pull_intake(service: AttendanceService, args: argparse.Namespace) -> None:
    _print_submission("Intake pull", service.pull_intake_to_ledger())


def handle_assign_ids(service: AttendanceService, args: argparse.Namespace) -> None:
    written = service.assign_intake_ids(args.rows or None)
    print(f"{written} id(s) assigned")


def handle_refresh(service: AttendanceService, args: argparse.Namespace) -> None:
    aggregates = service.refresh_stats(args.as_of)
    for agg in aggregates:
        print(
            f"{agg.person_id}\t{agg.full_name}\t{agg.activity_level.value}\t"
            f"{agg.events_in_trailing_window}\t{format_date(agg.last_attended_date)}"
            + (f"\t{agg.guest_tag}" if agg.guest_tag else "")
        )
    print(f"{len(aggregates)} stats record(s) written")


def handle_flags(service: AttendanceService, args: argparse.Namespace) -> None:
    report = service.compute_flags(args.as_of)
    for f in report.per_event_flags:
        marks = [m for m, on in (("first-time", f.first_time), ("follow-up", f.needs_follow_up)) if on]
        if marks:
            print(f"row {f.row_number}\t{f.full_name}\t{', '.join(marks)}")
    guests = sum(1 for tag in report.per_person_guest_tags.values() if tag)
    print(f"{guests} guest(s) not in the directory")


def handle_counters(service: AttendanceService, args: argparse.Namespace) -> None:
    counters = service.event_counters(args.event, args.as_of)
    print(f"This month: {counters.attendees_this_month}")
    print(f"This event: {counters.attendees_this_event}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Attendance identity and stats engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("resolve", help="Resolve a name to a person id")
    p.add_argument("name")
    p.set_defaults(handler=handle_resolve)

    p = subparsers.add_parser("submit-worksheet", help="Submit checked worksheet rows")
    p.add_argument("kind", choices=sorted(WORKSHEETS))
    p.set_defaults(handler=handle_submit_worksheet)

    p = subparsers.add_parser("form-submit", help="Process one new form row end to end")
    p.add_argument("row", type=int)
    p.set_defaults(handler=handle_form_submit)

    p = subparsers.add_parser("transfer", help="Copy one form row into the service ledger")
    p.add_argument("row", type=int)
    p.set_defaults(handler=handle_transfer)

    p = subparsers.add_parser("pull-intake", help="Copy all complete form rows into the ledger")
    p.set_defaults(handler=handle_pull_intake)

    p = subparsers.add_parser("assign-ids", help="Assign person ids to form rows")
    p.add_argument("rows", type=int, nargs="*", help="Row numbers (default: all)")
    p.set_defaults(handler=handle_assign_ids)

    p = subparsers.add_parser("refresh", help="Recompute and write attendance stats")
    p.add_argument("--as-of", type=_as_of, default=None, help="YYYY-MM-DD (default: today)")
    p.set_defaults(handler=handle_refresh)

    p = subparsers.add_parser("flags", help="Show first-time and follow-up flags")
    p.add_argument("--as-of", type=_as_of, default=None, help="YYYY-MM-DD (default: today)")
    p.set_defaults(handler=handle_flags)

    p = subparsers.add_parser("counters", help="Show attendee counters for an event")
    p.add_argument("event")
    p.add_argument("--as-of", type=_as_of, default=None, help="YYYY-MM-DD (default: today)")
    p.set_defaults(handler=handle_counters)

    return parser


def main(argv: list[str] | None = None, store: RecordStorePort | None = None) -> int:
    args = build_parser().parse_args(argv)
    if store is None:
        from attendance.adapters.store_factory import create_record_store

        store = create_record_store()
    service = AttendanceService(store)

    try:
        args.handler(service, args)
        return 0
    except (AttendanceError, SourceUnavailable) as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 1
