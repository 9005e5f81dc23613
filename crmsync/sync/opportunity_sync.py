"""Booking -> remote Opportunity with stage tracking."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import String, cast, select

from ..models.base import utcnow
from ..models.booking import Booking
from ..models.mapping import MappingRecord
from ..remote.result import Err, Ok, Result
from .field_mapper import build_payload
from .status_map import CLOSED_WON_STAGE, booking_status_for_stage, opportunity_stage_for
from .translator import EntityTranslator

logger = logging.getLogger(__name__)


def build_description(booking: Booking) -> str:
    lines = [f"BookingX ID: #{booking.id}"]
    if booking.service:
        lines.append(f"Service: {booking.service.name}")
    if booking.staff:
        lines.append(f"Staff: {booking.staff.name}")
    if booking.booking_date:
        when = booking.booking_date.isoformat()
        if booking.booking_time:
            when += f" {booking.booking_time}"
        lines.append(f"Date/Time: {when}")
    if booking.notes:
        lines.extend(["", "Notes:", booking.notes])
    return "\n".join(lines)


class OpportunitySync(EntityTranslator):
    remote_type = "Opportunity"
    local_type = "booking"

    def local_key(self, booking: Booking) -> str | None:
        return str(booking.id)

    def stage_for(self, local_status: str) -> str:
        return opportunity_stage_for(local_status, self.settings.default_opp_stage)

    async def build_payload(self, booking: Booking) -> dict[str, Any]:
        service_name = booking.service.name if booking.service else "Booking"
        close_date = booking.booking_date or utcnow().date()
        data: dict[str, Any] = {
            "Name": f"{service_name} - {booking.customer_name} (#{booking.id})",
            "StageName": self.stage_for(booking.status),
            "CloseDate": close_date.isoformat(),
            "Amount": float(booking.total_amount) if booking.total_amount else 0.0,
            "Description": build_description(booking),
        }
        if self.settings.opportunity_booking_field:
            data[self.settings.opportunity_booking_field] = str(booking.id)
        data.update(build_payload(self.remote_type, booking, await self.rules()))
        return data

    def status_payload(self, local_status: str) -> dict[str, Any]:
        stage = self.stage_for(local_status)
        payload: dict[str, Any] = {"StageName": stage}
        if stage == CLOSED_WON_STAGE:
            payload["CloseDate"] = utcnow().date().isoformat()
        return payload

    def inbound_key(self, remote_fields: dict[str, Any]) -> str | None:
        field = self.settings.opportunity_booking_field
        if not field:
            return None
        value = remote_fields.get(field)
        return str(value) if value not in (None, "") else None

    async def after_create(self, booking: Booking, remote_id: str) -> None:
        """Link the customer's Contact as primary contact role (best-effort)."""
        email = (booking.customer_email or "").strip().lower()
        if not email:
            return
        contact_id = await self.mappings.find("customer_email", email, "Contact")
        if not contact_id:
            return
        result = await self.client.create("OpportunityContactRole", {
            "OpportunityId": remote_id,
            "ContactId": contact_id,
            "IsPrimary": True,
            "Role": "Decision Maker",
        })
        if isinstance(result, Err):
            logger.warning("Contact role for opportunity %s failed: %s", remote_id, result.error)
            self._log("outbound", "create_contact_role", "error", result.error.message,
                      local_id=booking.id, remote_id=remote_id)

    async def apply_updates(self, remote_id: str, remote_fields: dict[str, Any]) -> Result[None]:
        local = await self.mappings.find_by_remote(self.remote_type, remote_id)
        if not local or local[0] != self.local_type:
            logger.info("No local booking for Opportunity %s", remote_id)
            return Ok(None)

        booking = await self.load_booking(local[1])
        if booking is None:
            return Ok(None)

        await self.write_back([booking], remote_fields)
        await self.mappings.mark(self.local_type, local[1], self.remote_type, "synced")

        stage = remote_fields.get("StageName")
        if isinstance(stage, str) and stage:
            new_status = booking_status_for_stage(stage)
            if booking.status != new_status:
                booking.status = new_status
                self._log("inbound", "stage_sync", "success",
                          f"Stage {stage} synced to status {new_status}",
                          local_id=booking.id, remote_id=remote_id)
        return Ok(None)

    async def unsynced_ids(self, limit: int) -> list[int]:
        mapped = select(MappingRecord.local_id).where(
            MappingRecord.local_type == self.local_type,
            MappingRecord.remote_type == self.remote_type,
        )
        stmt = (
            select(Booking.id)
            .where(cast(Booking.id, String).not_in(mapped))
            .order_by(Booking.id.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())
