"""Async test fixtures for CRM sync tests using SQLite and a fake CRM API."""

from __future__ import annotations

import json
import re
from datetime import date

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from crmsync.config import SyncSettings
from crmsync.database import get_db
from crmsync.models.base import Base
from crmsync.models.booking import Booking, Service, Staff
from crmsync.remote.auth import Credentials, TokenProvider
from crmsync.remote.client import RemoteClient
from crmsync.sync.engine import SyncEngine

INSTANCE_URL = "https://test.my.salesforce.com"
DATA_PATH = "/services/data/v58.0"

ID_PREFIXES = {
    "Contact": "003",
    "Lead": "00Q",
    "Opportunity": "006",
    "OpportunityContactRole": "00K",
}


class FakeCRM:
    """In-memory stand-in for the remote CRM REST API."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, dict]] = {}
        self.requests: list[tuple[str, str, dict | None]] = []
        self._failures: list[tuple[str, str, int, object]] = []
        self._counter = 0

    def fail_next(self, method: str, object_type: str, status: int, body: object = None) -> None:
        """Make the next matching request return an error response."""
        self._failures.append((method, object_type, status, body))

    def seed(self, object_type: str, remote_id: str, **fields) -> None:
        self.records.setdefault(object_type, {})[remote_id] = {"Id": remote_id, **fields}

    def calls(self, method: str, object_type: str) -> list[dict | None]:
        return [
            payload for m, path, payload in self.requests
            if m == method and f"/sobjects/{object_type}/" in path + "/"
        ]

    def _take_failure(self, method: str, object_type: str):
        for i, (m, t, status, body) in enumerate(self._failures):
            if m == method and t == object_type:
                del self._failures[i]
                return httpx.Response(status, json=body if body is not None else [
                    {"message": f"Injected failure ({status})", "errorCode": "INJECTED"}
                ])
        return None

    def _new_id(self, object_type: str) -> str:
        self._counter += 1
        return f"{ID_PREFIXES.get(object_type, '001')}{self._counter:015d}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        payload = json.loads(request.content) if request.content else None
        self.requests.append((method, path, payload))

        if path.startswith(f"{DATA_PATH}/query"):
            soql = request.url.params.get("q", "")
            match = re.search(r"FROM (\w+) WHERE Email = '(.*)' LIMIT", soql)
            object_type, email = match.group(1), match.group(2)
            failure = self._take_failure("GET", object_type)
            if failure:
                return failure
            found = [
                {"Id": rid, "Email": rec.get("Email")}
                for rid, rec in self.records.get(object_type, {}).items()
                if (rec.get("Email") or "").lower() == email.lower()
            ]
            return httpx.Response(200, json={"totalSize": len(found[:1]), "done": True, "records": found[:1]})

        parts = path[len(f"{DATA_PATH}/sobjects/"):].strip("/").split("/")
        if parts == [""]:
            return httpx.Response(200, json={"sobjects": [{"name": name} for name in ID_PREFIXES]})

        object_type = parts[0]
        failure = self._take_failure(method, object_type)
        if failure:
            return failure

        store = self.records.setdefault(object_type, {})
        if method == "POST":
            remote_id = self._new_id(object_type)
            store[remote_id] = {"Id": remote_id, **(payload or {})}
            return httpx.Response(201, json={"id": remote_id, "success": True, "errors": []})

        remote_id = parts[1]
        if remote_id not in store:
            return httpx.Response(404, json=[{"message": "entity is deleted", "errorCode": "ENTITY_IS_DELETED"}])
        if method == "PATCH":
            store[remote_id].update(payload or {})
            return httpx.Response(204)
        if method == "DELETE":
            del store[remote_id]
            return httpx.Response(204)
        return httpx.Response(200, json=store[remote_id])


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def sync_settings():
    return SyncSettings(
        _env_file=None,
        instance_url=INSTANCE_URL,
        access_token="test-token",
        sync_contacts=True,
        sync_leads=False,
        create_opportunities=False,
    )


@pytest.fixture
def fake_crm():
    return FakeCRM()


@pytest_asyncio.fixture
async def remote(fake_crm):
    tokens = TokenProvider(Credentials(access_token="test-token", instance_url=INSTANCE_URL))
    client = RemoteClient(tokens, transport=httpx.MockTransport(fake_crm.handler))
    yield client
    await client.close()


@pytest.fixture
def sync_engine(db, remote, sync_settings):
    return SyncEngine.build(db, remote, sync_settings)


@pytest_asyncio.fixture
async def make_booking(db: AsyncSession):
    """Factory committing a booking with sensible customer defaults."""

    async def _make(**overrides) -> Booking:
        service_name = overrides.pop("service_name", "Haircut")
        staff_name = overrides.pop("staff_name", None)
        fields = {
            "status": "pending",
            "customer_email": "a@x.com",
            "customer_first_name": "Ada",
            "customer_last_name": "Lovelace",
            "customer_phone": "555-0100",
            "booking_date": date(2026, 5, 1),
            "booking_time": "10:00",
            "total_amount": 120.0,
        }
        fields.update(overrides)
        if service_name:
            service = Service(name=service_name)
            db.add(service)
            await db.flush()
            fields.setdefault("service_id", service.id)
        if staff_name:
            staff = Staff(name=staff_name)
            db.add(staff)
            await db.flush()
            fields.setdefault("staff_id", staff.id)
        booking = Booking(**fields)
        db.add(booking)
        await db.commit()
        return booking

    return _make


@pytest_asyncio.fixture
async def client(engine, fake_crm):
    """HTTPX async test client against the sync app."""
    from crmsync.app import app
    from crmsync.deps import get_remote_client

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_remote_client():
        tokens = TokenProvider(Credentials(access_token="test-token", instance_url=INSTANCE_URL))
        async with RemoteClient(tokens, transport=httpx.MockTransport(fake_crm.handler)) as remote_client:
            yield remote_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_remote_client] = override_get_remote_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
