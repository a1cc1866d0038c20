from __future__ import annotations

import base64
import hashlib
import hmac
import logging

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


def compute_signature(secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the raw request body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def is_valid_signature(secret: str, body: bytes, signature: str) -> bool:
    return hmac.compare_digest(signature.encode(), compute_signature(secret, body).encode())


async def verify_webhook_signature(request: Request) -> bytes:
    """Dependency: reject requests whose signature header does not match the body.

    Returns the raw body so the route can parse it without reading twice.
    """
    settings = request.app.state.settings
    body = await request.body()
    signature = request.headers.get(settings.webhook_signature_header, "")
    if not is_valid_signature(settings.webhook_secret, body, signature):
        logger.warning("Assinatura de webhook invalida em %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid webhook signature",
        )
    return body
