"""CRM sync models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin
from .booking import Booking, Service, Staff, BOOKING_STATUSES
from .mapping import MappingRecord
from .queue import SyncQueueItem, QUEUE_OPERATIONS
from .field_mapping import FieldMappingRule
from .sync_log import SyncLog

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "Booking",
    "Service",
    "Staff",
    "BOOKING_STATUSES",
    "MappingRecord",
    "SyncQueueItem",
    "QUEUE_OPERATIONS",
    "FieldMappingRule",
    "SyncLog",
]
