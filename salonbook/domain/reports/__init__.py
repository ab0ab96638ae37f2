"""Reports domain - revenue, commissions and CSV export"""

from .router import router

__all__ = ["router"]
