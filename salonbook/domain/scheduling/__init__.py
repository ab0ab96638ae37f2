"""Scheduling domain - appointments, overlap checks and availability"""

from .router import router

__all__ = ["router"]
