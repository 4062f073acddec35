from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class SlotStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SoftwarePackage(str, Enum):
    ENTERPRISE_SUITE = "Enterprise Suite"
    CLOUD_BASIC = "Cloud Basic"
    SECURITY_PRO = "Security Pro"
    DATA_ANALYTICS = "Data Analytics"


@dataclass(frozen=True)
class TimeSlot:
    """A bookable (date, time label) unit with finite capacity.

    ``time`` is a display label ("10:00 AM") and is never parsed.
    """

    id: str
    date: str  # YYYY-MM-DD
    time: str
    total_slots: int
    available_slots: int
    status: SlotStatus = SlotStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is SlotStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "time": self.time,
            "total_slots": self.total_slots,
            "available_slots": self.available_slots,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TimeSlot:
        return cls(
            id=str(raw["id"]),
            date=str(raw["date"]),
            time=str(raw["time"]),
            total_slots=int(raw["total_slots"]),
            available_slots=int(raw["available_slots"]),
            status=SlotStatus(raw.get("status", SlotStatus.ACTIVE.value)),
        )


@dataclass(frozen=True)
class Booking:
    id: str
    company_name: str
    software_package: SoftwarePackage
    phone_number: str
    date: str  # YYYY-MM-DD
    time_slot: str
    created_at: str
    # Slot consumed at creation. Informational: deleting the slot keeps the booking.
    slot_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "company_name": self.company_name,
            "software_package": self.software_package.value,
            "phone_number": self.phone_number,
            "date": self.date,
            "time_slot": self.time_slot,
            "created_at": self.created_at,
        }
        if self.slot_id is not None:
            data["slot_id"] = self.slot_id
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Booking:
        slot_id = raw.get("slot_id")
        return cls(
            id=str(raw["id"]),
            company_name=str(raw["company_name"]),
            software_package=SoftwarePackage(raw["software_package"]),
            phone_number=str(raw["phone_number"]),
            date=str(raw["date"]),
            time_slot=str(raw["time_slot"]),
            created_at=str(raw["created_at"]),
            slot_id=str(slot_id) if slot_id is not None else None,
        )


@dataclass(frozen=True)
class BookingResult:
    success: bool
    message: str
    booking: Booking | None = None


@dataclass(frozen=True)
class DashboardStats:
    today_total: int
    upcoming_total: int
    available_today: int


class StateCorruptedError(RuntimeError):
    """Persisted state is not valid JSON (or not the expected shape).

    Treated as unrecoverable: the store refuses to guess what the data was.
    """


# Optional leading "+", then at least 10 digits, spaces or dashes.
_PHONE_RE = re.compile(r"^\+?[\d\s-]{10,}$")


def is_valid_phone(value: str) -> bool:
    return bool(_PHONE_RE.match(value))
