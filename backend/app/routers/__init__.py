"""Routers package."""

from .invoices import router as invoices_router
from .products import router as products_router
from .reports import router as reports_router
from .session import router as session_router
from .settings import router as settings_router
from .users import router as users_router

__all__ = [
    "invoices_router",
    "products_router",
    "reports_router",
    "session_router",
    "settings_router",
    "users_router",
]
