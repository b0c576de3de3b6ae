"""
Hierarchy API routes.

Read levels and nodes, create nodes. Used by the import wizard to
populate Hierarchy:<level> columns and by the hierarchy editor.
"""

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from config import settings
from models.hierarchy import HierarchyLevel, HierarchyNode, HierarchyNodeCreate
from services.hierarchy_service import get_hierarchy_service
from exceptions import AppError

router = APIRouter()
logger = structlog.get_logger(__name__)


def _handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


@router.get("/levels", response_model=list[HierarchyLevel])
async def list_levels(x_tenant_id: Optional[str] = Header(None)):
    """List hierarchy levels, shallowest first."""
    try:
        return get_hierarchy_service().list_levels(x_tenant_id or settings.default_tenant_id)
    except Exception as e:
        return _handle_error(e)


@router.get("/nodes", response_model=list[HierarchyNode])
async def list_nodes(
    level_id: Optional[str] = Query(None, description="Filter by level"),
    x_tenant_id: Optional[str] = Header(None),
):
    """List hierarchy nodes."""
    try:
        return get_hierarchy_service().list_nodes(
            x_tenant_id or settings.default_tenant_id,
            level_id=level_id,
        )
    except Exception as e:
        return _handle_error(e)


@router.post("/nodes", response_model=HierarchyNode, status_code=201)
async def create_node(
    data: HierarchyNodeCreate,
    x_tenant_id: Optional[str] = Header(None),
):
    """
    Create a hierarchy node.

    Raises:
        404: Level not found
        422: Validation error
    """
    try:
        service = get_hierarchy_service()
        tenant_id = x_tenant_id or settings.default_tenant_id
        service.get_level(data.level_id, tenant_id)
        return service.create_node(data, tenant_id=tenant_id)
    except Exception as e:
        return _handle_error(e)
