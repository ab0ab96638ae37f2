"""Catalog domain - services, professionals and professional login"""

from .router import auth_router, professionals_router, services_router

__all__ = ["auth_router", "professionals_router", "services_router"]
