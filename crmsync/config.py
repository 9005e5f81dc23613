"""CRM sync configuration via pydantic-settings."""

from __future__ import annotations

import math

from pydantic_settings import BaseSettings

# Lookup and create per customer kind, plus the Opportunity and its contact role.
REMOTE_CALLS_PER_ITEM = 6


class SyncSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///crmsync.db"
    echo_sql: bool = False
    app_title: str = "CRM Sync"

    # Remote CRM connection (token acquisition happens out-of-band)
    instance_url: str = ""
    access_token: str = ""
    refresh_token: str = ""
    client_id: str = ""
    client_secret: str = ""
    sandbox: bool = False
    api_version: str = "v58.0"
    request_timeout_seconds: float = 30.0

    # Which remote objects are kept in sync
    sync_contacts: bool = True
    sync_leads: bool = False
    create_opportunities: bool = True
    sync_on_booking: bool = True
    sync_on_status: bool = True

    default_lead_status: str = "Open - Not Contacted"
    default_opp_stage: str = "Prospecting"
    lead_source: str = "BookingX"
    # Optional custom Opportunity field carrying the booking id, used to
    # correlate remotely-created opportunities back to local bookings.
    opportunity_booking_field: str = ""

    # Queue policy
    queue_batch_size: int = 50
    queue_max_attempts: int = 3
    queue_backoff_max_minutes: int = 60
    queue_retention_days: int = 7
    queue_claim_timeout_minutes: int = 15
    queue_poll_interval_seconds: float = 60.0
    queue_worker_enabled: bool = True

    webhook_secret: str = ""
    security_fail_closed: bool = False

    model_config = {"env_prefix": "CRMSYNC_", "env_file": ".env", "extra": "ignore"}

    @property
    def login_url(self) -> str:
        if self.sandbox:
            return "https://test.salesforce.com"
        return "https://login.salesforce.com"

    @property
    def remote_configured(self) -> bool:
        return bool(self.instance_url and self.access_token)

    @property
    def claim_timeout_minutes(self) -> int:
        """Claim lease, never shorter than a worst-case batch of remote calls."""
        worst_case = self.queue_batch_size * REMOTE_CALLS_PER_ITEM * self.request_timeout_seconds
        return max(self.queue_claim_timeout_minutes, math.ceil(worst_case / 60))

    @property
    def enabled_kinds(self) -> tuple[str, ...]:
        """Remote object kinds enabled for outbound sync, in dispatch order."""
        kinds: list[str] = []
        if self.sync_contacts:
            kinds.append("Contact")
        if self.sync_leads:
            kinds.append("Lead")
        if self.create_opportunities:
            kinds.append("Opportunity")
        return tuple(kinds)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = SyncSettings()
