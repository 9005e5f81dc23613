"""Remote CRM API client (Salesforce-style REST endpoints).

Every public operation returns a ``Result``; HTTP and transport failures are
classified into ``ErrorKind`` values instead of being raised.

Usage:
    async with RemoteClient(TokenProvider.from_settings(settings)) as client:
        result = await client.create("Contact", {"LastName": "Doe"})
        if result.ok:
            print(result.value)
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from ..config import SyncSettings
from .auth import TokenProvider
from .result import Err, ErrorKind, Ok, Result, err

# Salesforce errorCode values that mean the payload itself is unacceptable.
VALIDATION_ERROR_CODES = frozenset({
    "REQUIRED_FIELD_MISSING",
    "INVALID_FIELD",
    "INVALID_TYPE",
    "INVALID_EMAIL_ADDRESS",
    "STRING_TOO_LONG",
    "FIELD_CUSTOM_VALIDATION_EXCEPTION",
    "INVALID_OR_NULL_FOR_RESTRICTED_PICKLIST",
    "JSON_PARSER_ERROR",
    "MALFORMED_QUERY",
})


def escape_soql(value: str) -> str:
    """Escape a string literal for a SOQL WHERE clause."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_message(body: Any, fallback: str) -> tuple[str, str | None]:
    """Extract (message, errorCode) from Salesforce error bodies."""
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get("message") or fallback, body[0].get("errorCode")
    if isinstance(body, dict):
        return body.get("message") or body.get("error_description") or fallback, body.get("errorCode")
    return fallback, None


def classify_response(status_code: int, body: Any) -> Err:
    """Map an HTTP error response to a classified error."""
    message, code = _error_message(body, f"API request failed ({status_code})")

    if status_code == 401:
        return err(ErrorKind.AUTH_EXPIRED, message, status_code, body)
    if status_code == 429 or code == "REQUEST_LIMIT_EXCEEDED":
        return err(ErrorKind.RATE_LIMITED, message, status_code, body)
    if status_code == 404 or code in {"NOT_FOUND", "ENTITY_IS_DELETED"}:
        return err(ErrorKind.NOT_FOUND, message, status_code, body)
    if status_code >= 500 or status_code == 408:
        return err(ErrorKind.TRANSIENT_NETWORK, message, status_code, body)
    if code in VALIDATION_ERROR_CODES or status_code in {400, 422}:
        if code == "DUPLICATE_VALUE":
            return err(ErrorKind.PERMANENT, message, status_code, body)
        return err(ErrorKind.VALIDATION, message, status_code, body)
    return err(ErrorKind.PERMANENT, message, status_code, body)


class RemoteClient:
    """Authenticated object CRUD and query access to the remote CRM."""

    def __init__(
        self,
        tokens: TokenProvider,
        *,
        api_version: str = "v58.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.tokens = tokens
        self.api_version = api_version
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RemoteClient":
        return cls(
            TokenProvider.from_settings(settings, transport=transport),
            api_version=settings.api_version,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    @property
    def _data_path(self) -> str:
        return f"/services/data/{self.api_version}"

    async def _request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        *,
        _retried: bool = False,
    ) -> Result[Any]:
        """Send one request; refresh the token once on 401 and retry."""
        credentials = self.tokens.credentials
        if credentials is None:
            return err(ErrorKind.CONFIGURATION, "Not connected to the remote CRM")

        url = credentials.instance_url.rstrip("/") + path
        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                headers={"Authorization": f"{credentials.token_type} {credentials.access_token}"},
            )
        except httpx.TimeoutException as exc:
            return err(ErrorKind.TRANSIENT_NETWORK, f"Request timed out: {exc}")
        except httpx.TransportError as exc:
            return err(ErrorKind.TRANSIENT_NETWORK, f"Network error: {exc}")

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = {"raw_response": response.text[:500]}

        if response.status_code == 401 and not _retried:
            refreshed = await self.tokens.refresh()
            if not refreshed.ok:
                return refreshed
            return await self._request(method, path, json, _retried=True)

        if response.status_code >= 400:
            return classify_response(response.status_code, body)

        return Ok(body)

    async def create(self, object_type: str, payload: dict) -> Result[str]:
        """Create a record; returns the new remote id."""
        result = await self._request("POST", f"{self._data_path}/sobjects/{object_type}/", payload)
        if not result.ok:
            return result
        body = result.value if isinstance(result.value, dict) else {}
        remote_id = body.get("id")
        if not remote_id:
            return err(ErrorKind.PERMANENT, f"{object_type} create returned no id", details=body)
        return Ok(remote_id)

    async def update(self, object_type: str, remote_id: str, payload: dict) -> Result[None]:
        result = await self._request("PATCH", f"{self._data_path}/sobjects/{object_type}/{remote_id}", payload)
        if not result.ok:
            return result
        return Ok(None)

    async def delete(self, object_type: str, remote_id: str) -> Result[None]:
        result = await self._request("DELETE", f"{self._data_path}/sobjects/{object_type}/{remote_id}")
        if not result.ok:
            return result
        return Ok(None)

    async def get(self, object_type: str, remote_id: str, fields: list[str] | None = None) -> Result[dict]:
        path = f"{self._data_path}/sobjects/{object_type}/{remote_id}"
        if fields:
            path += "?fields=" + ",".join(fields)
        result = await self._request("GET", path)
        if not result.ok:
            return result
        return Ok(result.value or {})

    async def query(self, soql: str, max_pages: int = 20) -> Result[list[dict]]:
        """Run a SOQL query, following ``nextRecordsUrl`` pagination."""
        records: list[dict] = []
        path = f"{self._data_path}/query/?q={quote(soql, safe='')}"

        for _ in range(max_pages):
            result = await self._request("GET", path)
            if not result.ok:
                return result
            body = result.value if isinstance(result.value, dict) else {}
            batch = body.get("records", [])
            if isinstance(batch, list):
                records.extend(r for r in batch if isinstance(r, dict))
            next_url = body.get("nextRecordsUrl")
            if body.get("done", True) or not next_url:
                break
            path = next_url

        return Ok(records)

    async def find_by_email(self, object_type: str, email: str, fields: tuple[str, ...] = ("Id", "Email")) -> Result[dict | None]:
        """Return the first record of ``object_type`` with this email, if any."""
        soql = (
            f"SELECT {', '.join(fields)} FROM {object_type} "
            f"WHERE Email = '{escape_soql(email)}' LIMIT 1"
        )
        result = await self.query(soql)
        if not result.ok:
            return result
        return Ok(result.value[0] if result.value else None)

    async def check_connection(self) -> Result[dict]:
        """Verify credentials by listing available objects."""
        result = await self._request("GET", f"{self._data_path}/sobjects/")
        if not result.ok:
            return result
        body = result.value if isinstance(result.value, dict) else {}
        return Ok({"api_version": self.api_version, "sobjects": len(body.get("sobjects", []))})
