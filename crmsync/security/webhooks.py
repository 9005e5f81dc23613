"""Inbound webhook signature validation."""

from __future__ import annotations

import hashlib
import hmac

from fastapi import HTTPException, Request

from ..config import settings

SIGNATURE_HEADER = "x-sf-signature"


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(request: Request, body: bytes) -> None:
    """Check the HMAC-SHA256 body signature when a secret is configured."""
    secret = settings.webhook_secret.strip()
    if not secret:
        if settings.security_fail_closed or settings.is_production:
            raise HTTPException(status_code=503, detail="Webhook secret not configured")
        return

    provided = request.headers.get(SIGNATURE_HEADER, "").strip()
    if not provided:
        raise HTTPException(status_code=401, detail="Missing webhook signature")
    if provided.startswith("sha256="):
        provided = provided.split("=", 1)[1]

    if not hmac.compare_digest(provided, compute_signature(body, secret)):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
