# storefront/routers/__init__.py

from .auth import router as auth_router
from .catalog import router as catalog_router
from .sales import router as sales_router

__all__ = [
    "auth_router",
    "catalog_router",
    "sales_router",
]
