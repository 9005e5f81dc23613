"""Explicit wiring of the sync components for one database session."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import SyncSettings
from ..remote.client import RemoteClient
from .contact_sync import ContactSync
from .lead_sync import LeadSync
from .mapping_store import MappingStore
from .opportunity_sync import OpportunitySync
from .sync_log import SyncLogger
from .translator import EntityTranslator

TRANSLATOR_CLASSES: tuple[type[EntityTranslator], ...] = (ContactSync, LeadSync, OpportunitySync)


@dataclass
class SyncEngine:
    db: AsyncSession
    client: RemoteClient
    settings: SyncSettings
    mappings: MappingStore
    sync_log: SyncLogger
    translators: dict[str, EntityTranslator] = field(default_factory=dict)

    @classmethod
    def build(cls, db: AsyncSession, client: RemoteClient, settings: SyncSettings) -> "SyncEngine":
        mappings = MappingStore(db)
        sync_log = SyncLogger(db)
        translators = {
            translator_cls.remote_type: translator_cls(db, client, mappings, sync_log, settings)
            for translator_cls in TRANSLATOR_CLASSES
        }
        return cls(db, client, settings, mappings, sync_log, translators)

    def translator(self, remote_type: str) -> EntityTranslator | None:
        return self.translators.get(remote_type)

    def enabled_translators(self) -> list[EntityTranslator]:
        """Translators enabled for outbound sync, contacts before opportunities."""
        return [self.translators[kind] for kind in self.settings.enabled_kinds if kind in self.translators]
