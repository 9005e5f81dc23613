"""Rule-driven field mapping between local bookings and remote CRM objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking
from ..models.field_mapping import FieldMappingRule

logger = logging.getLogger(__name__)


class SyncDirection(Enum):
    BOTH = "both"
    TO_REMOTE = "to_remote"
    FROM_REMOTE = "from_remote"

    def allows(self, wanted: "SyncDirection") -> bool:
        return self is SyncDirection.BOTH or self is wanted


class Transform(Enum):
    IDENTITY = "identity"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TITLECASE = "titlecase"
    DATE_ISO = "date_iso"
    DATETIME_ISO = "datetime_iso"
    FLOAT = "float"
    INT = "int"
    BOOL = "bool"


_FALSY_STRINGS = {"", "0", "false", "no", "off"}


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            dt = datetime.combine(date.fromisoformat(text[:10]), time.min)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def apply_transform(value: Any, transform: Transform) -> Any:
    """Apply a named transform; raises ValueError, TypeError or OverflowError on unusable input."""
    if transform is Transform.IDENTITY:
        return value
    if transform is Transform.UPPERCASE:
        return str(value).upper()
    if transform is Transform.LOWERCASE:
        return str(value).lower()
    if transform is Transform.TITLECASE:
        return str(value).lower().capitalize()
    if transform is Transform.DATE_ISO:
        return _to_datetime(value).date().isoformat()
    if transform is Transform.DATETIME_ISO:
        return _to_datetime(value).strftime("%Y-%m-%dT%H:%M:%SZ")
    if transform is Transform.FLOAT:
        return float(value)
    if transform is Transform.INT:
        return int(float(value))
    if transform is Transform.BOOL:
        if isinstance(value, str):
            return value.strip().lower() not in _FALSY_STRINGS
        return bool(value)
    return value


@dataclass(frozen=True)
class MappingRule:
    """A validated, typed view of one active FieldMappingRule row."""

    object_type: str
    local_field: str
    remote_field: str
    direction: SyncDirection = SyncDirection.BOTH
    transform: Transform = Transform.IDENTITY

    @classmethod
    def from_row(cls, row: FieldMappingRule) -> "MappingRule | None":
        try:
            direction = SyncDirection(row.sync_direction or "both")
            transform = Transform(row.transform or "identity")
        except ValueError:
            logger.warning("Skipping invalid field mapping rule %s", row.id)
            return None
        if not row.local_field or not row.remote_field:
            return None
        return cls(row.object_type, row.local_field, row.remote_field, direction, transform)


# Derived values readable by rules in addition to booking columns and meta.
def _service_name(b: Booking) -> Any:
    return b.service.name if b.service else None


def _staff_name(b: Booking) -> Any:
    return b.staff.name if b.staff else None


def _booking_date(b: Booking) -> Any:
    return b.booking_date.isoformat() if b.booking_date else None


def _booking_total(b: Booking) -> Any:
    return float(b.total_amount) if b.total_amount else None


def _customer_name(b: Booking) -> Any:
    return " ".join(p for p in (b.customer_first_name, b.customer_last_name) if p) or None


COMPUTED_FIELDS = {
    "booking_service": _service_name,
    "booking_staff": _staff_name,
    "booking_date": _booking_date,
    "booking_total": _booking_total,
    "customer_name": _customer_name,
}

# Booking columns that inbound sync may overwrite. Identity and lifecycle
# columns (id, customer_email, status, foreign keys) are never written here.
WRITABLE_COLUMNS = frozenset({
    "customer_first_name",
    "customer_last_name",
    "customer_phone",
    "booking_time",
    "notes",
})


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def read_local_field(booking: Booking, field_name: str) -> Any:
    """Resolve a local field: column, then meta, then computed. None if absent."""
    if field_name in COMPUTED_FIELDS:
        value = COMPUTED_FIELDS[field_name](booking)
        return None if _is_empty(value) else value

    if field_name in Booking.__table__.columns and field_name != "meta":
        value = getattr(booking, field_name, None)
        if not _is_empty(value):
            return value

    meta = booking.meta if isinstance(booking.meta, dict) else {}
    value = meta.get(field_name)
    return None if _is_empty(value) else value


def build_payload(
    object_type: str,
    booking: Booking,
    rules: Iterable[MappingRule],
    direction: SyncDirection = SyncDirection.TO_REMOTE,
) -> dict[str, Any]:
    """Build ``{remote_field: value}`` from the rules allowing ``direction``.

    Missing values and values a transform cannot handle are omitted.
    """
    payload: dict[str, Any] = {}
    for rule in rules:
        if rule.object_type != object_type or not rule.direction.allows(direction):
            continue
        value = read_local_field(booking, rule.local_field)
        if value is None:
            continue
        try:
            payload[rule.remote_field] = apply_transform(value, rule.transform)
        except (TypeError, ValueError, OverflowError):
            logger.debug("Transform %s failed for %s", rule.transform.value, rule.local_field)
    return payload


def inbound_values(
    object_type: str,
    remote_fields: dict[str, Any],
    rules: Iterable[MappingRule],
) -> dict[str, Any]:
    """Map remote field values to local field names for rules allowing inbound."""
    values: dict[str, Any] = {}
    for rule in rules:
        if rule.object_type != object_type or not rule.direction.allows(SyncDirection.FROM_REMOTE):
            continue
        if rule.local_field in COMPUTED_FIELDS:
            continue
        value = remote_fields.get(rule.remote_field)
        if value is None:
            continue
        values[rule.local_field] = value
    return values


def apply_inbound_values(booking: Booking, values: dict[str, Any]) -> list[str]:
    """Write inbound values onto a booking; returns the fields that changed."""
    changed: list[str] = []
    meta = dict(booking.meta) if isinstance(booking.meta, dict) else {}
    meta_changed = False

    for field_name, value in values.items():
        if field_name in WRITABLE_COLUMNS:
            text = str(value).strip()
            if getattr(booking, field_name) != text:
                setattr(booking, field_name, text)
                changed.append(field_name)
        elif field_name not in Booking.__table__.columns:
            if meta.get(field_name) != value:
                meta[field_name] = value
                meta_changed = True
                changed.append(field_name)

    if meta_changed:
        booking.meta = meta
    return changed


async def load_rules(db: AsyncSession, object_type: str) -> list[MappingRule]:
    """Active, valid rules for one remote object type."""
    stmt = select(FieldMappingRule).where(
        FieldMappingRule.object_type == object_type,
        FieldMappingRule.is_active.is_(True),
    )
    rows = (await db.execute(stmt)).scalars().all()
    return [rule for rule in (MappingRule.from_row(r) for r in rows) if rule is not None]


DEFAULT_RULES: tuple[tuple[str, str, str, str, str], ...] = (
    # (object_type, local_field, remote_field, sync_direction, transform)
    ("Contact", "customer_first_name", "FirstName", "both", "identity"),
    ("Contact", "customer_last_name", "LastName", "both", "identity"),
    ("Contact", "customer_email", "Email", "to_remote", "lowercase"),
    ("Contact", "customer_phone", "Phone", "both", "identity"),
    ("Lead", "customer_first_name", "FirstName", "both", "identity"),
    ("Lead", "customer_last_name", "LastName", "both", "identity"),
    ("Lead", "customer_email", "Email", "to_remote", "lowercase"),
    ("Lead", "customer_phone", "Phone", "both", "identity"),
    ("Lead", "booking_service", "Description", "to_remote", "identity"),
)


async def seed_default_rules(db: AsyncSession) -> int:
    """Insert the default rules when no rule exists yet; returns rows added."""
    existing = (await db.execute(select(FieldMappingRule.id).limit(1))).first()
    if existing:
        return 0
    for object_type, local_field, remote_field, direction, transform in DEFAULT_RULES:
        db.add(FieldMappingRule(
            object_type=object_type,
            local_field=local_field,
            remote_field=remote_field,
            sync_direction=direction,
            transform=transform,
            is_active=True,
        ))
    await db.commit()
    return len(DEFAULT_RULES)
