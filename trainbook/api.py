"""Async contract consumed by the presentation layer.

Methods are coroutines so a real backend can replace the local store without
touching callers. Each call runs one synchronous store operation. Booking
creation runs in a worker thread because it also delivers notifications.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any

from trainbook.config import Settings
from trainbook.domain import Booking, BookingResult, DashboardStats, SlotStatus, SoftwarePackage, TimeSlot
from trainbook.notifier import build_notifier
from trainbook.storage import open_storage
from trainbook.store import SchedulingStore


class TrainingApi:
    def __init__(self, store: SchedulingStore) -> None:
        self.store = store

    @classmethod
    def from_settings(cls, settings: Settings) -> TrainingApi:
        store = SchedulingStore(
            open_storage(settings.state_file),
            admin_password=settings.admin_password,
            on_booking=build_notifier(settings),
        )
        return cls(store)

    # Public

    async def list_slots_for_date(self, date: dt.date | str) -> list[TimeSlot]:
        return self.store.list_slots_for_date(date)

    async def create_booking(
        self,
        date: dt.date | str,
        time_slot: str,
        company_name: str,
        phone_number: str,
        software_package: SoftwarePackage | str,
    ) -> BookingResult:
        return await asyncio.to_thread(
            self.store.create_booking, date, time_slot, company_name, phone_number, software_package
        )

    # Admin

    async def admin_login(self, password: str) -> bool:
        return self.store.admin_login(password)

    async def is_admin_logged_in(self) -> bool:
        return self.store.is_admin_logged_in()

    async def admin_logout(self) -> None:
        self.store.admin_logout()

    async def compute_dashboard_stats(self, today: dt.date | str | None = None) -> DashboardStats:
        return self.store.compute_dashboard_stats(today)

    async def list_all_bookings(self) -> list[Booking]:
        return self.store.list_all_bookings()

    async def list_all_slots(self) -> list[TimeSlot]:
        return self.store.list_all_slots()

    async def create_slot(
        self,
        date: dt.date | str,
        time: str,
        total_slots: int,
        status: SlotStatus | str = SlotStatus.ACTIVE,
    ) -> None:
        self.store.create_slot(date, time, total_slots, status)

    async def update_slot(self, slot_id: str, **changes: Any) -> None:
        self.store.update_slot(slot_id, **changes)

    async def delete_slot(self, slot_id: str) -> None:
        self.store.delete_slot(slot_id)
