"""Messaging domain - WhatsApp bridge and auto-reply agent"""

from .router import router, webhook_router

__all__ = ["router", "webhook_router"]
