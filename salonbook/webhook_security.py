"""
Webhook Security Module

Inbound WhatsApp webhooks carry a shared secret in the X-Webhook-Token
header. The token is compared in constant time; when no secret is
configured the check is skipped (local development).
"""

import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from .config import WHATSAPP_WEBHOOK_TOKEN

logger = logging.getLogger(__name__)

WEBHOOK_TOKEN_HEADER = "X-Webhook-Token"


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def verify_webhook_token(received: Optional[str], expected: Optional[str]) -> bool:
    if not expected:
        return True
    return constant_time_compare(received, expected)


async def verify_whatsapp_webhook(request: Request) -> None:
    """FastAPI dependency guarding the WhatsApp webhook"""
    received = request.headers.get(WEBHOOK_TOKEN_HEADER)
    if not verify_webhook_token(received, WHATSAPP_WEBHOOK_TOKEN):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"🚫 WhatsApp webhook rejected: bad or missing token from {client}")
        raise HTTPException(status_code=401, detail="Invalid webhook token")
