"""Shared create-or-update flow for remote object translators."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import SyncSettings
from ..models.booking import Booking
from ..models.mapping import MappingRecord
from ..remote.client import RemoteClient
from ..remote.result import Err, ErrorKind, Ok, Result, err
from .field_mapper import MappingRule, apply_inbound_values, inbound_values, load_rules
from .mapping_store import MappingStore
from .sync_log import SyncLogger

logger = logging.getLogger(__name__)

INBOUND_EVENTS = ("created", "updated", "deleted", "converted")


class EntityTranslator:
    """Translates bookings into one kind of remote object and back.

    Subclasses set ``remote_type`` and ``local_type`` and provide
    ``local_key``, ``build_payload`` and, where the object carries a
    lifecycle stage, ``status_payload``.
    """

    remote_type: str = ""
    local_type: str = "booking"

    def __init__(
        self,
        db: AsyncSession,
        client: RemoteClient,
        mappings: MappingStore,
        sync_log: SyncLogger,
        settings: SyncSettings,
    ):
        self.db = db
        self.client = client
        self.mappings = mappings
        self.sync_log = sync_log
        self.settings = settings

    @property
    def kind(self) -> str:
        return self.remote_type.lower()

    # -- hooks ---------------------------------------------------------------

    def local_key(self, booking: Booking) -> str | None:
        raise NotImplementedError

    async def build_payload(self, booking: Booking) -> dict[str, Any]:
        raise NotImplementedError

    def status_payload(self, local_status: str) -> dict[str, Any] | None:
        """Remote fields for a status change; None when the object has no stage."""
        return None

    def inbound_key(self, remote_fields: dict[str, Any]) -> str | None:
        """Local key carried by an inbound payload, for first-seen reconciliation."""
        return None

    async def skip_reason(self, key: str) -> str | None:
        return None

    async def after_create(self, booking: Booking, remote_id: str) -> None:
        return None

    async def apply_updates(self, remote_id: str, remote_fields: dict[str, Any]) -> Result[None]:
        return Ok(None)

    async def apply_conversion(self, remote_id: str, remote_fields: dict[str, Any]) -> Result[None]:
        logger.info("Ignoring converted event for %s %s", self.remote_type, remote_id)
        return Ok(None)

    # -- helpers -------------------------------------------------------------

    async def rules(self) -> list[MappingRule]:
        return await load_rules(self.db, self.remote_type)

    async def load_booking(self, local_id: str | int) -> Booking | None:
        try:
            booking_id = int(local_id)
        except (TypeError, ValueError):
            return None
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(selectinload(Booking.service), selectinload(Booking.staff))
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def resolve_existing(self, key: str) -> Result[str | None]:
        return Ok(await self.mappings.find(self.local_type, key, self.remote_type))

    def _log(self, direction: str, action: str, status: str, message: str, *, local_type: str | None = None,
             local_id: Any = None, remote_id: str | None = None, request_data: dict | None = None) -> None:
        self.sync_log.record(
            direction,
            f"{action}_{self.kind}",
            status=status,
            message=message,
            local_type=local_type or self.local_type,
            local_id=local_id,
            remote_type=self.remote_type,
            remote_id=remote_id,
            request_data=request_data,
        )

    async def _prepare(self, local_id: str | int) -> Result[tuple[Booking, str]]:
        booking = await self.load_booking(local_id)
        if booking is None:
            return err(ErrorKind.VALIDATION, f"Invalid booking: {local_id}")
        key = self.local_key(booking)
        if not key:
            return err(ErrorKind.VALIDATION, f"No customer email found for booking {booking.id}")
        return Ok((booking, key))

    # -- contract ------------------------------------------------------------

    async def sync_from_local(self, local_id: str | int) -> Result[str | None]:
        """Create the remote object, or update it when a mapping already exists."""
        prepared = await self._prepare(local_id)
        if not prepared.ok:
            return prepared
        booking, key = prepared.value

        reason = await self.skip_reason(key)
        if reason:
            logger.debug("Skipping %s sync for booking %s: %s", self.remote_type, booking.id, reason)
            return Ok(None)

        existing = await self.resolve_existing(key)
        if not existing.ok:
            return existing
        remote_id = existing.value
        payload = await self.build_payload(booking)

        if remote_id:
            result = await self.client.update(self.remote_type, remote_id, payload)
            if isinstance(result, Err):
                await self.mappings.mark(self.local_type, key, self.remote_type, "error")
                self._log("outbound", "update", "error", result.error.message, local_type="booking",
                          local_id=booking.id, remote_id=remote_id)
                await self.db.commit()
                return result
            await self.mappings.upsert(self.local_type, key, self.remote_type, remote_id)
            self._log("outbound", "update", "success", f"{self.remote_type} update successfully",
                      local_type="booking", local_id=booking.id, remote_id=remote_id)
            await self.db.commit()
            return Ok(remote_id)

        created = await self.client.create(self.remote_type, payload)
        if isinstance(created, Err):
            self._log("outbound", "create", "error", created.error.message, local_type="booking",
                      local_id=booking.id)
            await self.db.commit()
            return created

        remote_id = created.value
        await self.mappings.upsert(self.local_type, key, self.remote_type, remote_id)
        self._log("outbound", "create", "success", f"{self.remote_type} create successfully",
                  local_type="booking", local_id=booking.id, remote_id=remote_id)
        # Persist the mapping before any follow-up call so a retry takes the update path.
        await self.db.commit()
        await self.after_create(booking, remote_id)
        await self.db.commit()
        return Ok(remote_id)

    async def update_status_from_local(self, local_id: str | int, local_status: str) -> Result[str | None]:
        """Push a booking status as the remote stage/status."""
        payload = self.status_payload(local_status)
        if payload is None:
            return Ok(None)

        prepared = await self._prepare(local_id)
        if not prepared.ok:
            return prepared
        booking, key = prepared.value

        remote_id = await self.mappings.find(self.local_type, key, self.remote_type)
        if not remote_id:
            # Never synced: a full sync carries the stage in its payload.
            return await self.sync_from_local(local_id)

        result = await self.client.update(self.remote_type, remote_id, payload)
        if isinstance(result, Err):
            await self.mappings.mark(self.local_type, key, self.remote_type, "error")
            self._log("outbound", "update_stage", "error", result.error.message, local_type="booking",
                      local_id=booking.id, remote_id=remote_id)
            await self.db.commit()
            return result

        await self.mappings.upsert(self.local_type, key, self.remote_type, remote_id)
        self._log("outbound", "update_stage", "success", f"Status {local_status} synced as {payload}",
                  local_type="booking", local_id=booking.id, remote_id=remote_id)
        await self.db.commit()
        return Ok(remote_id)

    async def apply_inbound(self, remote_id: str, remote_fields: dict[str, Any], event_kind: str) -> Result[None]:
        """Apply a normalized inbound event for this object kind."""
        if event_kind == "deleted":
            removed = await self.mappings.remove(self.remote_type, remote_id)
            self._log("inbound", "deleted", "success", f"Removed {removed} mapping(s)", local_type=None,
                      remote_id=remote_id)
            await self.db.commit()
            return Ok(None)

        if event_kind == "converted":
            return await self.apply_conversion(remote_id, remote_fields)

        if event_kind == "created":
            if await self.mappings.find_by_remote(self.remote_type, remote_id) is None:
                key = self.inbound_key(remote_fields)
                if key:
                    await self.mappings.upsert(self.local_type, key, self.remote_type, remote_id)
                    self._log("inbound", "linked", "success", f"Linked remote {self.remote_type}",
                              local_id=key, remote_id=remote_id)

        if event_kind in ("created", "updated"):
            result = await self.apply_updates(remote_id, remote_fields)
            await self.db.commit()
            return result

        logger.info("Ignoring %s event for %s %s", event_kind, self.remote_type, remote_id)
        return Ok(None)

    async def write_back(self, bookings: list[Booking], remote_fields: dict[str, Any]) -> list[str]:
        """Copy inbound-allowed remote values onto bookings; returns changed fields."""
        values = inbound_values(self.remote_type, remote_fields, await self.rules())
        changed: set[str] = set()
        for booking in bookings:
            changed.update(apply_inbound_values(booking, values))
        return sorted(changed)

    async def unsynced_ids(self, limit: int) -> list[int]:
        """Booking ids whose key has no mapping yet, for bulk backfill."""
        raise NotImplementedError

    async def sync_all(self, limit: int = 100) -> tuple[int, list[str]]:
        """Sync up to ``limit`` unmapped entities; returns (synced, errors)."""
        synced = 0
        errors: list[str] = []
        for booking_id in await self.unsynced_ids(limit):
            result = await self.sync_from_local(booking_id)
            if result.ok:
                synced += 1
            else:
                errors.append(f"{self.remote_type} booking {booking_id}: {result.error}")
        return synced, errors


class CustomerTranslator(EntityTranslator):
    """Translator for person objects keyed by the customer's email."""

    local_type = "customer_email"

    def local_key(self, booking: Booking) -> str | None:
        email = (booking.customer_email or "").strip().lower()
        return email or None

    def inbound_key(self, remote_fields: dict[str, Any]) -> str | None:
        email = remote_fields.get("Email")
        if isinstance(email, str) and email.strip():
            return email.strip().lower()
        return None

    async def resolve_existing(self, key: str) -> Result[str | None]:
        """Local mapping first, then a remote lookup by email."""
        remote_id = await self.mappings.find(self.local_type, key, self.remote_type)
        if remote_id:
            return Ok(remote_id)

        found = await self.client.find_by_email(self.remote_type, key)
        if isinstance(found, Err):
            return found
        if found.value and found.value.get("Id"):
            remote_id = found.value["Id"]
            await self.mappings.upsert(self.local_type, key, self.remote_type, remote_id)
            return Ok(remote_id)
        return Ok(None)

    async def bookings_for_email(self, email: str) -> list[Booking]:
        stmt = select(Booking).where(func.lower(Booking.customer_email) == email.lower())
        return list((await self.db.execute(stmt)).scalars().all())

    async def apply_updates(self, remote_id: str, remote_fields: dict[str, Any]) -> Result[None]:
        email = self.inbound_key(remote_fields)
        if not email:
            local = await self.mappings.find_by_remote(self.remote_type, remote_id)
            email = local[1] if local and local[0] == self.local_type else None
        if not email:
            logger.info("No local customer for %s %s", self.remote_type, remote_id)
            return Ok(None)

        bookings = await self.bookings_for_email(email)
        changed = await self.write_back(bookings, remote_fields)
        await self.mappings.mark(self.local_type, email, self.remote_type, "synced")
        if changed:
            self._log("inbound", "update", "success",
                      f"Updated {', '.join(changed)} on {len(bookings)} booking(s)",
                      local_id=email, remote_id=remote_id)
        return Ok(None)

    async def latest_unmapped_bookings(self, limit: int, exclude_remote_type: str | None = None) -> list[int]:
        """Most recent booking id per customer email lacking a mapping."""
        email = func.lower(Booking.customer_email)
        excluded = [self.remote_type]
        if exclude_remote_type:
            excluded.append(exclude_remote_type)
        mapped = select(MappingRecord.local_id).where(
            MappingRecord.local_type == self.local_type,
            MappingRecord.remote_type.in_(excluded),
        )
        stmt = (
            select(func.max(Booking.id))
            .where(Booking.customer_email.is_not(None), Booking.customer_email != "", email.not_in(mapped))
            .group_by(email)
            .limit(limit)
        )
        return [row for row in (await self.db.execute(stmt)).scalars().all() if row is not None]
