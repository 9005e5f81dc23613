"""Booking customer -> remote Lead, including Lead -> Contact conversion."""

from __future__ import annotations

from typing import Any

from ..models.booking import Booking
from ..remote.result import ErrorKind, Ok, Result, err
from .field_mapper import build_payload
from .status_map import lead_status_for
from .translator import CustomerTranslator

DEFAULT_LAST_NAME = "Unknown"
DEFAULT_COMPANY = "Individual"


class LeadSync(CustomerTranslator):
    remote_type = "Lead"

    async def build_payload(self, booking: Booking) -> dict[str, Any]:
        data = build_payload(self.remote_type, booking, await self.rules())
        if not data.get("LastName"):
            data["LastName"] = DEFAULT_LAST_NAME
        if not data.get("Company"):
            data["Company"] = DEFAULT_COMPANY
        if not data.get("Status"):
            data["Status"] = self.settings.default_lead_status
        data["LeadSource"] = self.settings.lead_source
        return data

    def status_payload(self, local_status: str) -> dict[str, Any]:
        return {"Status": lead_status_for(local_status, self.settings.default_lead_status)}

    async def skip_reason(self, key: str) -> str | None:
        if await self.mappings.find(self.local_type, key, "Contact"):
            return "customer already converted to a Contact"
        return None

    async def unsynced_ids(self, limit: int) -> list[int]:
        return await self.latest_unmapped_bookings(limit, exclude_remote_type="Contact")

    async def apply_conversion(self, remote_id: str, remote_fields: dict[str, Any]) -> Result[None]:
        """Move the customer's mapping from the Lead to the converted Contact."""
        contact_id = remote_fields.get("ConvertedContactId")
        if not isinstance(contact_id, str) or not contact_id:
            return err(ErrorKind.VALIDATION, f"Converted Lead {remote_id} carries no ConvertedContactId")

        email = self.inbound_key(remote_fields)
        if not email:
            local = await self.mappings.find_by_remote(self.remote_type, remote_id)
            email = local[1] if local and local[0] == self.local_type else None
        if not email:
            return err(ErrorKind.VALIDATION, f"Converted Lead {remote_id} has no known customer email")

        # Both writes share one transaction.
        await self.mappings.remove(self.remote_type, remote_id)
        await self.mappings.upsert(self.local_type, email, "Contact", contact_id)
        self._log(
            "inbound",
            "converted",
            "success",
            f"Lead {remote_id} converted to Contact {contact_id}",
            local_id=email,
            remote_id=remote_id,
            request_data={"lead_id": remote_id, "contact_id": contact_id},
        )
        await self.db.commit()
        return Ok(None)
