"""Tests for the remote CRM client: error classification and token refresh."""

from __future__ import annotations

import json

import httpx
import pytest

from crmsync.remote.auth import Credentials, TokenProvider
from crmsync.remote.client import RemoteClient, classify_response, escape_soql
from crmsync.remote.result import ErrorKind

INSTANCE = "https://test.my.salesforce.com"


def _client(handler, *, refresh_token: str = "", credentials: Credentials | None = None) -> RemoteClient:
    transport = httpx.MockTransport(handler)
    tokens = TokenProvider(
        credentials if credentials is not None else Credentials("old-token", INSTANCE),
        refresh_token=refresh_token,
        client_id="cid" if refresh_token else "",
        client_secret="secret" if refresh_token else "",
        transport=transport,
    )
    return RemoteClient(tokens, transport=transport)


@pytest.mark.parametrize(
    ("status", "body", "kind"),
    [
        (401, [{"message": "Session expired", "errorCode": "INVALID_SESSION_ID"}], ErrorKind.AUTH_EXPIRED),
        (429, None, ErrorKind.RATE_LIMITED),
        (403, [{"message": "limit", "errorCode": "REQUEST_LIMIT_EXCEEDED"}], ErrorKind.RATE_LIMITED),
        (404, [{"message": "gone", "errorCode": "NOT_FOUND"}], ErrorKind.NOT_FOUND),
        (503, None, ErrorKind.TRANSIENT_NETWORK),
        (400, [{"message": "Required fields are missing: [LastName]", "errorCode": "REQUIRED_FIELD_MISSING"}],
         ErrorKind.VALIDATION),
        (400, [{"message": "duplicate", "errorCode": "DUPLICATE_VALUE"}], ErrorKind.PERMANENT),
        (403, [{"message": "no access", "errorCode": "INSUFFICIENT_ACCESS"}], ErrorKind.PERMANENT),
    ],
)
def test_classify_response(status, body, kind):
    result = classify_response(status, body)
    assert not result.ok
    assert result.error.kind is kind
    assert result.error.status_code == status


def test_classify_response_uses_remote_message():
    result = classify_response(400, [{"message": "Bad email", "errorCode": "INVALID_EMAIL_ADDRESS"}])
    assert result.error.message == "Bad email"
    assert result.error.retryable is False


def test_escape_soql():
    assert escape_soql("o'brien@x.com") == "o\\'brien@x.com"


@pytest.mark.asyncio
async def test_create_returns_remote_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "003ABC", "success": True})

    async with _client(handler) as client:
        result = await client.create("Contact", {"LastName": "Doe"})

    assert result.ok and result.value == "003ABC"
    assert seen["url"] == f"{INSTANCE}/services/data/v58.0/sobjects/Contact/"
    assert seen["auth"] == "Bearer old-token"
    assert seen["body"] == {"LastName": "Doe"}


@pytest.mark.asyncio
async def test_create_without_id_is_permanent():
    async with _client(lambda request: httpx.Response(201, json={"success": True})) as client:
        result = await client.create("Contact", {"LastName": "Doe"})
    assert not result.ok
    assert result.error.kind is ErrorKind.PERMANENT


@pytest.mark.asyncio
async def test_401_refreshes_once_and_retries():
    auth_headers = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/services/oauth2/token":
            return httpx.Response(200, json={"access_token": "new-token", "instance_url": INSTANCE})
        auth_headers.append(request.headers["authorization"])
        if request.headers["authorization"] == "Bearer old-token":
            return httpx.Response(401, json=[{"message": "Session expired", "errorCode": "INVALID_SESSION_ID"}])
        return httpx.Response(204)

    async with _client(handler, refresh_token="refresh") as client:
        result = await client.update("Contact", "003ABC", {"Phone": "1"})

    assert result.ok
    assert auth_headers == ["Bearer old-token", "Bearer new-token"]
    assert client.tokens.credentials.access_token == "new-token"


@pytest.mark.asyncio
async def test_401_without_refresh_token_is_auth_expired():
    async with _client(lambda request: httpx.Response(401, json=[{"message": "expired"}])) as client:
        result = await client.update("Contact", "003ABC", {"Phone": "1"})
    assert not result.ok
    assert result.error.kind is ErrorKind.AUTH_EXPIRED
    assert result.error.retryable


@pytest.mark.asyncio
async def test_second_401_after_refresh_is_not_retried_again():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/services/oauth2/token":
            return httpx.Response(200, json={"access_token": "new-token"})
        calls.append(request.url.path)
        return httpx.Response(401, json=[{"message": "still expired"}])

    async with _client(handler, refresh_token="refresh") as client:
        result = await client.delete("Contact", "003ABC")

    assert len(calls) == 2
    assert result.error.kind is ErrorKind.AUTH_EXPIRED


@pytest.mark.asyncio
async def test_transport_error_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await client.create("Lead", {"LastName": "Doe"})
    assert result.error.kind is ErrorKind.TRANSIENT_NETWORK


@pytest.mark.asyncio
async def test_missing_credentials_is_configuration_error():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    tokens = TokenProvider(None)
    async with RemoteClient(tokens, transport=httpx.MockTransport(handler)) as client:
        result = await client.create("Contact", {"LastName": "Doe"})
    assert result.error.kind is ErrorKind.CONFIGURATION
    assert not result.error.retryable


@pytest.mark.asyncio
async def test_query_follows_next_records_url():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/query/"):
            return httpx.Response(200, json={
                "done": False,
                "records": [{"Id": "1"}],
                "nextRecordsUrl": "/services/data/v58.0/query/01g-2000",
            })
        return httpx.Response(200, json={"done": True, "records": [{"Id": "2"}]})

    async with _client(handler) as client:
        result = await client.query("SELECT Id FROM Contact")
    assert [r["Id"] for r in result.value] == ["1", "2"]


@pytest.mark.asyncio
async def test_find_by_email_returns_first_match_or_none():
    def handler(request: httpx.Request) -> httpx.Response:
        soql = request.url.params["q"]
        if "hit@x.com" in soql:
            return httpx.Response(200, json={"done": True, "records": [{"Id": "003HIT", "Email": "hit@x.com"}]})
        return httpx.Response(200, json={"done": True, "records": []})

    async with _client(handler) as client:
        hit = await client.find_by_email("Contact", "hit@x.com")
        miss = await client.find_by_email("Contact", "miss@x.com")
    assert hit.value["Id"] == "003HIT"
    assert miss.ok and miss.value is None
