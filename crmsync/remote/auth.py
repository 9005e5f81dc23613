"""Access token handling for the remote CRM.

Token acquisition is done out-of-band (OAuth consent flow); this module only
holds the current credentials and performs the refresh-token grant.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..config import SyncSettings
from .result import ErrorKind, Ok, Result, err


@dataclass
class Credentials:
    access_token: str
    instance_url: str
    token_type: str = "Bearer"


class TokenProvider:
    """Holds credentials and refreshes them with a refresh token."""

    def __init__(
        self,
        credentials: Credentials | None,
        *,
        login_url: str = "https://login.salesforce.com",
        refresh_token: str = "",
        client_id: str = "",
        client_secret: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = credentials
        self.login_url = login_url.rstrip("/")
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: SyncSettings, transport: httpx.AsyncBaseTransport | None = None) -> "TokenProvider":
        credentials = None
        if settings.remote_configured:
            credentials = Credentials(
                access_token=settings.access_token,
                instance_url=settings.instance_url,
            )
        return cls(
            credentials,
            login_url=settings.login_url,
            refresh_token=settings.refresh_token,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    async def refresh(self) -> Result[Credentials]:
        """Exchange the refresh token for a new access token."""
        if not (self.refresh_token and self.client_id and self.client_secret):
            return err(ErrorKind.AUTH_EXPIRED, "Access token expired and no refresh token available")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.login_url}/services/oauth2/token",
                    data={
                        "grant_type": "refresh_token",
                        "refresh_token": self.refresh_token,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                )
        except httpx.HTTPError as exc:
            return err(ErrorKind.TRANSIENT_NETWORK, f"Token refresh failed: {exc}")

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.status_code != 200 or "access_token" not in body:
            message = body.get("error_description") or body.get("error") or "Token refresh failed"
            return err(ErrorKind.AUTH_EXPIRED, message, response.status_code, body)

        instance_url = body.get("instance_url") or (self._credentials.instance_url if self._credentials else "")
        self._credentials = Credentials(
            access_token=body["access_token"],
            instance_url=instance_url,
            token_type=body.get("token_type", "Bearer"),
        )
        return Ok(self._credentials)
