from __future__ import annotations

import datetime as dt
import threading
from unittest.mock import Mock, patch

import pytest

from trainbook.domain import Booking, SoftwarePackage
from trainbook.storage import MemoryStorage
from trainbook.store import BOOKINGS_KEY, SLOTS_KEY, SLOT_UNAVAILABLE_MESSAGE, SchedulingStore

TODAY = "2026-03-02"
PHONE = "+1 555 123 4567"


def _clock() -> dt.datetime:
    return dt.datetime(2026, 3, 2, 9, 30, 15)


def _seeded_store(storage: MemoryStorage | None = None, **kwargs) -> SchedulingStore:
    store = SchedulingStore(storage or MemoryStorage(), clock=_clock, **kwargs)
    store.list_slots_for_date(TODAY)
    return store


def _slot(store: SchedulingStore, date: str, time: str):
    return next(s for s in store.list_all_slots() if s.date == date and s.time == time)


def test_booking_consumes_one_seat_until_slot_is_full() -> None:
    store = _seeded_store()

    result = store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Enterprise Suite")
    assert result.success
    assert result.message == "Booking successful!"
    assert _slot(store, TODAY, "10:00 AM").available_slots == 4

    for i in range(4):
        assert store.create_booking(TODAY, "10:00 AM", f"Co{i}", PHONE, SoftwarePackage.CLOUD_BASIC).success
    assert _slot(store, TODAY, "10:00 AM").available_slots == 0

    rejected = store.create_booking(TODAY, "10:00 AM", "Late Ltd", PHONE, "Security Pro")
    assert not rejected.success
    assert rejected.booking is None
    assert "filled up" in rejected.message
    assert _slot(store, TODAY, "10:00 AM").available_slots == 0
    assert len(store.list_all_bookings()) == 5


def test_booking_record_fields() -> None:
    store = _seeded_store()

    result = store.create_booking(dt.date(2026, 3, 3), "03:00 PM", "Acme", PHONE, "Data Analytics")

    booking = result.booking
    assert booking is not None
    assert booking.id.startswith("bk-")
    assert booking.date == "2026-03-03"
    assert booking.time_slot == "03:00 PM"
    assert booking.software_package is SoftwarePackage.DATA_ANALYTICS
    assert booking.created_at == "2026-03-02T09:30:15"
    assert booking.slot_id == "seed-2026-03-03-2"
    assert store.list_all_bookings() == [booking]


def test_booking_without_matching_slot_changes_nothing() -> None:
    storage = MemoryStorage()
    store = _seeded_store(storage)
    slots_before = storage.get_item(SLOTS_KEY)

    result = store.create_booking(TODAY, "11:11 AM", "Acme", PHONE, "Cloud Basic")

    assert result.success is False
    assert result.message == SLOT_UNAVAILABLE_MESSAGE
    assert storage.get_item(SLOTS_KEY) == slots_before
    assert storage.get_item(BOOKINGS_KEY) is None


def test_booking_with_unknown_package_is_rejected() -> None:
    store = _seeded_store()
    with pytest.raises(ValueError):
        store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Free Tier")
    assert store.list_all_bookings() == []


def test_inactive_slot_is_still_bookable_by_date_and_time() -> None:
    store = _seeded_store()
    store.update_slot(f"seed-{TODAY}-0", status="inactive")

    assert store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic").success


def test_failed_write_leaves_both_collections_untouched() -> None:
    storage = MemoryStorage()
    store = _seeded_store(storage)
    slots_before = storage.get_item(SLOTS_KEY)

    with patch.object(storage, "write_many", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic")

    assert storage.get_item(SLOTS_KEY) == slots_before
    assert store.list_all_bookings() == []


def test_slot_and_ledger_are_written_together() -> None:
    storage = MemoryStorage()
    store = _seeded_store(storage)

    with patch.object(storage, "write_many", wraps=storage.write_many) as write_many:
        store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic")

    write_many.assert_called_once()
    assert set(write_many.call_args.args[0]) == {SLOTS_KEY, BOOKINGS_KEY}


def test_concurrent_bookings_never_overbook() -> None:
    store = SchedulingStore(MemoryStorage(), clock=_clock)
    store.create_slot(TODAY, "09:00 AM", 3)

    results = []
    barrier = threading.Barrier(10)

    def book(i: int) -> None:
        barrier.wait()
        results.append(store.create_booking(TODAY, "09:00 AM", f"Co{i}", PHONE, "Cloud Basic"))

    threads = [threading.Thread(target=book, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(r.success for r in results) == 3
    (slot,) = store.list_all_slots()
    assert slot.available_slots == 0
    assert len(store.list_all_bookings()) == 3


def test_deleting_slot_keeps_its_bookings() -> None:
    store = _seeded_store()
    booking = store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic").booking

    store.delete_slot(f"seed-{TODAY}-0")

    assert all(s.id != f"seed-{TODAY}-0" for s in store.list_all_slots())
    assert store.list_all_bookings() == [booking]
    # The orphaned pair can no longer be booked.
    assert not store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic").success


def test_booking_hook_receives_new_booking() -> None:
    hook = Mock()
    store = _seeded_store(on_booking=hook)

    result = store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic")

    hook.assert_called_once_with(result.booking)


def test_booking_hook_failure_does_not_fail_booking() -> None:
    hook = Mock(side_effect=RuntimeError("telegram down"))
    store = _seeded_store(on_booking=hook)

    result = store.create_booking(TODAY, "10:00 AM", "Acme", PHONE, "Cloud Basic")

    assert result.success
    assert len(store.list_all_bookings()) == 1


def test_rejected_booking_does_not_call_hook() -> None:
    hook = Mock()
    store = _seeded_store(on_booking=hook)

    store.create_booking(TODAY, "11:11 AM", "Acme", PHONE, "Cloud Basic")

    hook.assert_not_called()


def test_reads_bookings_written_by_the_browser_widget() -> None:
    legacy = (
        '[{"company_name": "Acme", "software_package": "Security Pro", "phone_number": "5551234567",'
        ' "date": "2026-03-02", "time_slot": "10:00 AM", "id": "bk-1709370000000",'
        ' "created_at": "3/2/2026, 9:30:00 AM"}]'
    )
    store = SchedulingStore(MemoryStorage({BOOKINGS_KEY: legacy}), clock=_clock)

    assert store.list_all_bookings() == [
        Booking(
            id="bk-1709370000000",
            company_name="Acme",
            software_package=SoftwarePackage.SECURITY_PRO,
            phone_number="5551234567",
            date="2026-03-02",
            time_slot="10:00 AM",
            created_at="3/2/2026, 9:30:00 AM",
        )
    ]
