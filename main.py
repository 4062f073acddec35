import argparse
import asyncio
import datetime as dt
import logging
import sys

from trainbook.api import TrainingApi
from trainbook.config import load_settings
from trainbook.domain import SlotStatus, SoftwarePackage, TimeSlot, is_valid_phone
from trainbook.reports import export_bookings_csv, filter_bookings, report_filename

ADMIN_COMMANDS = {"stats", "bookings", "export", "all-slots", "create-slot", "update-slot", "delete-slot"}


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _today() -> str:
    return dt.date.today().isoformat()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TrainBook: training slot booking")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("slots", help="List active slots for a date")
    p.add_argument("--date", default=None, help="YYYY-MM-DD, defaults to today")

    p = sub.add_parser("book", help="Reserve a seat in a slot")
    p.add_argument("--date", required=True)
    p.add_argument("--time", required=True, help='Slot label, e.g. "10:00 AM"')
    p.add_argument("--company", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--package", required=True, choices=[pkg.value for pkg in SoftwarePackage])

    p = sub.add_parser("login", help="Start an admin session")
    p.add_argument("--password", required=True)
    sub.add_parser("logout", help="End the admin session")

    p = sub.add_parser("stats", help="Dashboard numbers")
    p.add_argument("--today", default=None)
    sub.add_parser("bookings", help="List every booking")
    sub.add_parser("all-slots", help="List every slot, including inactive ones")

    p = sub.add_parser("export", help="Export bookings as CSV")
    p.add_argument("--search", default=None)
    p.add_argument("--start", default=None)
    p.add_argument("--end", default=None)
    p.add_argument("--output", default=None, help="File path; defaults to report_<today>.csv, '-' for stdout")

    p = sub.add_parser("create-slot", help="Add a slot")
    p.add_argument("--date", required=True)
    p.add_argument("--time", required=True)
    p.add_argument("--capacity", type=int, required=True)
    p.add_argument("--status", default=SlotStatus.ACTIVE.value, choices=[s.value for s in SlotStatus])

    p = sub.add_parser("update-slot", help="Change a slot's fields")
    p.add_argument("slot_id")
    p.add_argument("--date", default=None)
    p.add_argument("--time", default=None)
    p.add_argument("--capacity", type=int, default=None)
    p.add_argument("--status", default=None, choices=[s.value for s in SlotStatus])

    p = sub.add_parser("delete-slot", help="Remove a slot (bookings are kept)")
    p.add_argument("slot_id")

    return parser


def _print_slots(slots: list[TimeSlot]) -> None:
    if not slots:
        print("No slots.")
        return
    for s in sorted(slots, key=lambda s: (s.date, s.time)):
        print(f"{s.id}  {s.date} {s.time:<9} {s.available_slots}/{s.total_slots}  {s.status.value}")


async def run(args: argparse.Namespace, api: TrainingApi) -> int:
    if args.command in ADMIN_COMMANDS and not await api.is_admin_logged_in():
        print("Admin login required: run `login --password ...` first.", file=sys.stderr)
        return 1

    if args.command == "slots":
        _print_slots(await api.list_slots_for_date(args.date or _today()))
        return 0

    if args.command == "book":
        if not is_valid_phone(args.phone):
            print("Please enter a valid phone number (at least 10 digits).", file=sys.stderr)
            return 1
        result = await api.create_booking(args.date, args.time, args.company, args.phone, args.package)
        print(result.message)
        return 0 if result.success else 1

    if args.command == "login":
        if await api.admin_login(args.password):
            print("Logged in.")
            return 0
        print("Invalid admin password.", file=sys.stderr)
        return 1

    if args.command == "logout":
        await api.admin_logout()
        print("Logged out.")
        return 0

    if args.command == "stats":
        stats = await api.compute_dashboard_stats(args.today or _today())
        print(f"Bookings today: {stats.today_total}")
        print(f"Upcoming bookings: {stats.upcoming_total}")
        print(f"Seats left today: {stats.available_today}")
        return 0

    if args.command == "bookings":
        for b in await api.list_all_bookings():
            print(f"{b.id}  {b.date} {b.time_slot:<9} {b.company_name} ({b.software_package.value}) {b.phone_number}")
        return 0

    if args.command == "all-slots":
        _print_slots(await api.list_all_slots())
        return 0

    if args.command == "export":
        bookings = filter_bookings(
            await api.list_all_bookings(),
            search=args.search,
            start_date=args.start,
            end_date=args.end,
        )
        content = export_bookings_csv(bookings)
        if args.output == "-":
            sys.stdout.write(content)
            return 0
        path = args.output or report_filename(dt.date.today())
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        print(f"Exported {len(bookings)} booking(s) to {path}")
        return 0

    if args.command == "create-slot":
        await api.create_slot(args.date, args.time, args.capacity, args.status)
        print("Slot created.")
        return 0

    if args.command == "update-slot":
        changes = {
            "date": args.date,
            "time": args.time,
            "total_slots": args.capacity,
            "status": args.status,
        }
        await api.update_slot(args.slot_id, **{k: v for k, v in changes.items() if v is not None})
        print("Slot updated.")
        return 0

    if args.command == "delete-slot":
        await api.delete_slot(args.slot_id)
        print("Slot deleted.")
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    _setup_logging()
    settings = load_settings()
    api = TrainingApi.from_settings(settings)

    try:
        return asyncio.run(run(args, api))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
