"""Shared FastAPI dependencies."""

from __future__ import annotations

from .config import settings
from .remote.client import RemoteClient


async def get_remote_client():
    """Yield a remote client built from settings, closed after the request."""
    async with RemoteClient.from_settings(settings) as client:
        yield client
