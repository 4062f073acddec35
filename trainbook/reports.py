from __future__ import annotations

import csv
import datetime as dt
import io
from typing import Iterable

from trainbook.domain import Booking

CSV_HEADER = ("Date", "Time", "Company", "Package", "Phone", "Booked At")


def filter_bookings(
    bookings: Iterable[Booking],
    *,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[Booking]:
    """Admin report filter, newest date first.

    ``search`` matches the company name case-insensitively or the phone
    number verbatim. Date bounds are inclusive ISO dates.
    """
    needle = search or ""

    def matches(b: Booking) -> bool:
        if needle and needle.lower() not in b.company_name.lower() and needle not in b.phone_number:
            return False
        if start_date and b.date < start_date:
            return False
        if end_date and b.date > end_date:
            return False
        return True

    return sorted((b for b in bookings if matches(b)), key=lambda b: b.date, reverse=True)


def export_bookings_csv(bookings: Iterable[Booking]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for b in bookings:
        writer.writerow([b.date, b.time_slot, b.company_name, b.software_package.value, b.phone_number, b.created_at])
    return buf.getvalue()


def report_filename(today: dt.date) -> str:
    return f"report_{today.isoformat()}.csv"
