"""
Business logic services.

Each service handles one domain area.
"""

from services.hierarchy_service import HierarchyService, get_hierarchy_service
from services.order_service import OrderService, get_order_service
from services.order_import_service import OrderImportService, get_order_import_service

__all__ = [
    "HierarchyService",
    "get_hierarchy_service",
    "OrderService",
    "get_order_service",
    "OrderImportService",
    "get_order_import_service",
]
