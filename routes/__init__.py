"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.order_import import router as order_import_router
from routes.hierarchy import router as hierarchy_router

__all__ = [
    "order_import_router",
    "hierarchy_router",
]
