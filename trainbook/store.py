from __future__ import annotations

import datetime as dt
import json
import logging
import threading
import uuid
from dataclasses import replace
from typing import Any, Callable, Iterable

from trainbook.domain import (
    Booking,
    BookingResult,
    DashboardStats,
    SlotStatus,
    SoftwarePackage,
    StateCorruptedError,
    TimeSlot,
)
from trainbook.storage import KeyValueStorage

logger = logging.getLogger(__name__)

SLOTS_KEY = "training_slots"
BOOKINGS_KEY = "training_bookings"
ADMIN_SESSION_KEY = "training_admin_session"

DEFAULT_ADMIN_PASSWORD = "123456"

SEED_DAY_OFFSETS = (0, 1, 2, 7)
SEED_TIMES = ("10:00 AM", "12:00 PM", "03:00 PM", "05:00 PM")
SEED_CAPACITY = 5

SLOT_UNAVAILABLE_MESSAGE = "This slot has just filled up. Please select another time."
BOOKING_SUCCESS_MESSAGE = "Booking successful!"

UPDATABLE_SLOT_FIELDS = frozenset({"date", "time", "total_slots", "status"})

BookingHook = Callable[[Booking], None]


def _iso(value: dt.date | str) -> str:
    if isinstance(value, dt.datetime):
        value = value.date()
    if isinstance(value, dt.date):
        return value.isoformat()
    return value


class SchedulingStore:
    """Slot store and booking ledger over a key-value storage backend.

    Every operation reads the whole collection, computes the new value and
    writes it back while holding ``self._lock``. Booking creation writes the
    slot list and the ledger in a single ``write_many`` call.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        admin_password: str = DEFAULT_ADMIN_PASSWORD,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
        on_booking: BookingHook | None = None,
    ) -> None:
        self._storage = storage
        self._admin_password = admin_password
        self._clock = clock
        self._on_booking = on_booking
        self._lock = threading.RLock()

    # ── Persistence helpers ──────────────────────────────────────────────

    def _read_list(self, key: str) -> list[dict[str, Any]]:
        raw = self._storage.get_item(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateCorruptedError(f"Stored value for {key!r} is not valid JSON") from e
        if not isinstance(items, list):
            raise StateCorruptedError(f"Stored value for {key!r} must be a JSON array")
        return items

    def _load_slots(self) -> list[TimeSlot]:
        return [TimeSlot.from_dict(item) for item in self._read_list(SLOTS_KEY)]

    def _load_bookings(self) -> list[Booking]:
        return [Booking.from_dict(item) for item in self._read_list(BOOKINGS_KEY)]

    @staticmethod
    def _dump(items: Iterable[TimeSlot] | Iterable[Booking]) -> str:
        return json.dumps([item.to_dict() for item in items], ensure_ascii=False)

    def _save_slots(self, slots: list[TimeSlot]) -> None:
        self._storage.write_many({SLOTS_KEY: self._dump(slots)})

    def _seed_if_missing(self) -> None:
        if self._storage.get_item(SLOTS_KEY):
            return

        today = self._clock().date()
        slots: list[TimeSlot] = []
        for offset in SEED_DAY_OFFSETS:
            date_iso = (today + dt.timedelta(days=offset)).isoformat()
            for i, time_label in enumerate(SEED_TIMES):
                slots.append(
                    TimeSlot(
                        id=f"seed-{date_iso}-{i}",
                        date=date_iso,
                        time=time_label,
                        total_slots=SEED_CAPACITY,
                        available_slots=SEED_CAPACITY,
                        status=SlotStatus.ACTIVE,
                    )
                )
        self._save_slots(slots)
        logger.info("Seeded %d default slots starting %s", len(slots), today.isoformat())

    # ── Slots ────────────────────────────────────────────────────────────

    def list_slots_for_date(self, date: dt.date | str) -> list[TimeSlot]:
        date_iso = _iso(date)
        with self._lock:
            self._seed_if_missing()
            return [s for s in self._load_slots() if s.date == date_iso and s.is_active]

    def list_all_slots(self) -> list[TimeSlot]:
        with self._lock:
            return self._load_slots()

    def create_slot(
        self,
        date: dt.date | str,
        time: str,
        total_slots: int,
        status: SlotStatus | str = SlotStatus.ACTIVE,
    ) -> TimeSlot:
        if total_slots < 0:
            raise ValueError(f"total_slots must be >= 0, got {total_slots}")

        slot = TimeSlot(
            id=f"slot-{uuid.uuid4().hex}",
            date=_iso(date),
            time=time,
            total_slots=total_slots,
            available_slots=total_slots,
            status=SlotStatus(status),
        )
        with self._lock:
            slots = self._load_slots()
            slots.append(slot)
            self._save_slots(slots)

        logger.info("Created slot %s (%s %s, capacity=%d)", slot.id, slot.date, slot.time, slot.total_slots)
        return slot

    def update_slot(self, slot_id: str, **changes: Any) -> None:
        """Apply a partial update to one slot.

        Changing ``total_slots`` shifts ``available_slots`` by the same delta,
        floored at zero; existing bookings are never cancelled. Unknown ids
        are ignored.
        """
        unknown = set(changes) - UPDATABLE_SLOT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update slot fields: {', '.join(sorted(unknown))}")

        if "date" in changes:
            changes["date"] = _iso(changes["date"])
        if "status" in changes:
            changes["status"] = SlotStatus(changes["status"])
        if "total_slots" in changes:
            changes["total_slots"] = int(changes["total_slots"])
            if changes["total_slots"] < 0:
                raise ValueError(f"total_slots must be >= 0, got {changes['total_slots']}")

        with self._lock:
            slots = self._load_slots()
            for idx, slot in enumerate(slots):
                if slot.id == slot_id:
                    break
            else:
                logger.info("Slot %s not found, nothing to update", slot_id)
                return

            if "total_slots" in changes:
                new_total = changes["total_slots"]
                diff = new_total - slot.total_slots
                changes["available_slots"] = min(new_total, max(0, slot.available_slots + diff))

            slots[idx] = replace(slot, **changes)
            self._save_slots(slots)

        logger.info("Updated slot %s: %s", slot_id, sorted(changes))

    def delete_slot(self, slot_id: str) -> None:
        # Bookings referencing the slot are kept.
        with self._lock:
            slots = self._load_slots()
            remaining = [s for s in slots if s.id != slot_id]
            if len(remaining) == len(slots):
                logger.info("Slot %s not found, nothing to delete", slot_id)
                return
            self._save_slots(remaining)

        logger.info("Deleted slot %s", slot_id)

    # ── Bookings ─────────────────────────────────────────────────────────

    def create_booking(
        self,
        date: dt.date | str,
        time_slot: str,
        company_name: str,
        phone_number: str,
        software_package: SoftwarePackage | str,
    ) -> BookingResult:
        date_iso = _iso(date)
        package = SoftwarePackage(software_package)

        with self._lock:
            slots = self._load_slots()
            bookings = self._load_bookings()

            idx = next((i for i, s in enumerate(slots) if s.date == date_iso and s.time == time_slot), None)
            if idx is None or slots[idx].available_slots <= 0:
                logger.warning("Booking rejected: %s %s is unavailable", date_iso, time_slot)
                return BookingResult(success=False, message=SLOT_UNAVAILABLE_MESSAGE)

            slot = slots[idx]
            slots[idx] = replace(slot, available_slots=slot.available_slots - 1)

            booking = Booking(
                id=f"bk-{uuid.uuid4().hex}",
                company_name=company_name,
                software_package=package,
                phone_number=phone_number,
                date=date_iso,
                time_slot=time_slot,
                created_at=self._clock().isoformat(timespec="seconds"),
                slot_id=slot.id,
            )
            bookings.append(booking)

            self._storage.write_many({SLOTS_KEY: self._dump(slots), BOOKINGS_KEY: self._dump(bookings)})

        logger.info(
            "Booking %s created: %s %s for %s (remaining=%d)",
            booking.id,
            date_iso,
            time_slot,
            company_name,
            slots[idx].available_slots,
        )
        self._notify(booking)
        return BookingResult(success=True, message=BOOKING_SUCCESS_MESSAGE, booking=booking)

    def _notify(self, booking: Booking) -> None:
        if self._on_booking is None:
            return
        # Best-effort: the booking is already persisted.
        try:
            self._on_booking(booking)
        except Exception:
            logger.warning("Booking hook failed for %s", booking.id, exc_info=True)

    def list_all_bookings(self) -> list[Booking]:
        with self._lock:
            return self._load_bookings()

    def compute_dashboard_stats(self, today: dt.date | str | None = None) -> DashboardStats:
        today_iso = _iso(today) if today is not None else self._clock().date().isoformat()
        with self._lock:
            bookings = self._load_bookings()
            slots = self._load_slots()

        return DashboardStats(
            today_total=sum(1 for b in bookings if b.date == today_iso),
            # ISO dates compare correctly as strings.
            upcoming_total=sum(1 for b in bookings if b.date >= today_iso),
            available_today=sum(s.available_slots for s in slots if s.date == today_iso),
        )

    # ── Admin session ────────────────────────────────────────────────────

    def admin_login(self, password: str) -> bool:
        if password != self._admin_password:
            logger.warning("Admin login failed")
            return False
        with self._lock:
            self._storage.write_many({ADMIN_SESSION_KEY: "true"})
        logger.info("Admin logged in")
        return True

    def is_admin_logged_in(self) -> bool:
        return self._storage.get_item(ADMIN_SESSION_KEY) == "true"

    def admin_logout(self) -> None:
        with self._lock:
            self._storage.write_many({ADMIN_SESSION_KEY: None})
        logger.info("Admin logged out")
