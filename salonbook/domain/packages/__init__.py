"""Packages domain - package catalogue, sales and the session credit ledger"""

from .router import router

__all__ = ["router"]
