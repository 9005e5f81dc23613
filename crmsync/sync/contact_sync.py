"""Booking customer -> remote Contact."""

from __future__ import annotations

from typing import Any

from ..models.booking import Booking
from .field_mapper import build_payload
from .translator import CustomerTranslator

DEFAULT_LAST_NAME = "Unknown"


class ContactSync(CustomerTranslator):
    remote_type = "Contact"

    async def build_payload(self, booking: Booking) -> dict[str, Any]:
        data = build_payload(self.remote_type, booking, await self.rules())
        if not data.get("LastName"):
            data["LastName"] = DEFAULT_LAST_NAME
        return data

    async def unsynced_ids(self, limit: int) -> list[int]:
        return await self.latest_unmapped_bookings(limit)
