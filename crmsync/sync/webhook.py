"""Normalize provider webhook payloads and apply them through translators.

Each provider adapter turns a raw JSON body into ``CanonicalEvent`` values;
``WebhookIngestion`` logs receipt and hands every event to the translator
for its remote type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..remote.result import Ok, Result
from .engine import SyncEngine
from .translator import INBOUND_EVENTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanonicalEvent:
    event_kind: str
    remote_type: str
    remote_id: str
    fields: dict[str, Any] = field(default_factory=dict)


def _record_id(fields: dict[str, Any]) -> str:
    value = fields.get("Id") or fields.get("id") or ""
    return str(value)


class CanonicalAdapter:
    """``{"event_kind", "remote_type", "remote_id", "fields"}`` or ``{"events": [...]}``."""

    name = "canonical"

    def parse(self, payload: Any) -> list[CanonicalEvent]:
        if isinstance(payload, dict) and isinstance(payload.get("events"), list):
            entries = payload["events"]
        elif isinstance(payload, list):
            entries = payload
        else:
            entries = [payload]

        events = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError("Each event must be a JSON object")
            fields = entry.get("fields") or {}
            if not isinstance(fields, dict):
                raise ValueError("'fields' must be an object")
            remote_id = str(entry.get("remote_id") or _record_id(fields))
            events.append(CanonicalEvent(
                event_kind=str(entry.get("event_kind", "")).lower(),
                remote_type=str(entry.get("remote_type", "")),
                remote_id=remote_id,
                fields=fields,
            ))
        return events


class OutboundMessageAdapter:
    """Salesforce-style ``{"sobject": "Lead", "event": "updated", "data": {...}}``."""

    name = "salesforce"

    def parse(self, payload: Any) -> list[CanonicalEvent]:
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
        sobject = payload.get("sobject")
        event = payload.get("event")
        data = payload.get("data") or {}
        if not sobject or not event or not isinstance(data, dict):
            raise ValueError("Payload requires 'sobject', 'event' and 'data'")
        return [CanonicalEvent(str(event).lower(), str(sobject), _record_id(data), data)]


class ChangeEventAdapter:
    """Change-data-capture events carrying a ``ChangeEventHeader``."""

    name = "cdc"

    change_types = {
        "CREATE": "created",
        "UPDATE": "updated",
        "UNDELETE": "created",
        "DELETE": "deleted",
    }

    def parse(self, payload: Any) -> list[CanonicalEvent]:
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
        header = payload.get("ChangeEventHeader")
        if not isinstance(header, dict):
            raise ValueError("Missing ChangeEventHeader")

        remote_type = str(header.get("entityName", ""))
        change_type = str(header.get("changeType", "")).upper()
        event_kind = self.change_types.get(change_type, change_type.lower())
        fields = {k: v for k, v in payload.items() if k != "ChangeEventHeader"}
        if remote_type == "Lead" and event_kind == "updated" and fields.get("IsConverted") and fields.get("ConvertedContactId"):
            event_kind = "converted"

        return [
            CanonicalEvent(event_kind, remote_type, str(record_id), {**fields, "Id": str(record_id)})
            for record_id in header.get("recordIds") or []
        ]


ADAPTERS = {adapter.name: adapter for adapter in (CanonicalAdapter(), OutboundMessageAdapter(), ChangeEventAdapter())}


def get_adapter(provider: str):
    return ADAPTERS.get(provider)


class WebhookIngestion:
    """Apply normalized inbound events to local state."""

    def __init__(self, engine: SyncEngine):
        self.engine = engine

    async def handle(self, event_kind: str, remote_type: str, payload: dict[str, Any]) -> Result[str]:
        """Apply one event; returns ``applied`` or ``ignored``."""
        return await self.handle_event(CanonicalEvent(event_kind, remote_type, _record_id(payload), payload))

    async def handle_event(self, event: CanonicalEvent) -> Result[str]:
        self.engine.sync_log.record(
            "inbound", "webhook_received", status="success",
            message=f"{event.remote_type} {event.event_kind}",
            remote_type=event.remote_type or None, remote_id=event.remote_id or None,
            request_data={"event_kind": event.event_kind, "fields": event.fields},
        )
        await self.engine.db.commit()

        translator = self.engine.translator(event.remote_type)
        if translator is None or event.event_kind not in INBOUND_EVENTS or not event.remote_id:
            logger.info("Ignoring webhook %s %s %s", event.remote_type, event.event_kind, event.remote_id)
            return Ok("ignored")

        result = await translator.apply_inbound(event.remote_id, event.fields, event.event_kind)
        if not result.ok:
            logger.warning("Webhook %s %s %s failed: %s", event.remote_type, event.event_kind,
                           event.remote_id, result.error)
            return result
        return Ok("applied")

    async def ingest(self, provider: str, payload: Any) -> list[Result[str]]:
        adapter = get_adapter(provider)
        if adapter is None:
            raise LookupError(f"Unknown webhook provider: {provider}")
        return [await self.handle_event(event) for event in adapter.parse(payload)]
