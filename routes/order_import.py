"""
Order import API routes.

Excel import wizard: upload a workbook, map its columns to order fields,
review value mappings and row errors, then confirm. Nothing is written
until /confirm succeeds.
"""

from fastapi import APIRouter, UploadFile, File, Header
from fastapi.responses import JSONResponse, Response, StreamingResponse
from typing import Optional
import structlog

from config import settings
from models.order import OrderImportResult
from models.order_import import ImportConfirmRequest, ImportPreview, MappingUpdate
from parsers.orders_excel_parser import build_orders_template
from services.hierarchy_service import get_hierarchy_service
from services.order_import_service import get_order_import_service
from exceptions import AppError

router = APIRouter()
logger = structlog.get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
TEMPLATE_FILENAME = "order-import-template.xlsx"
ERRORS_FILENAME = "order-import-errors.csv"


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


def _tenant(x_tenant_id: Optional[str]) -> Optional[str]:
    return x_tenant_id or settings.default_tenant_id


@router.get("/template")
async def download_template(x_tenant_id: Optional[str] = Header(None)):
    """
    Download the .xlsx import template.

    Columns: Order #, Customer Name, Customer Email, Product, Quantity,
    Due Date, Priority, Status, Notes, then one Hierarchy:<level> column
    per importable level.
    """
    try:
        levels = get_hierarchy_service().list_levels(_tenant(x_tenant_id))
        buffer = build_orders_template([level.name for level in levels if level.importable])
        return StreamingResponse(
            buffer,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
        )
    except Exception as e:
        return _handle_error(e)


@router.post("/upload", response_model=ImportPreview)
async def upload_workbook(
    file: UploadFile = File(...),
    x_tenant_id: Optional[str] = Header(None),
):
    """
    Upload a workbook and open an import session.

    The first worksheet is read; row 1 is the header. Returns the
    suggested mapping, seeded value mappings and current row errors.

    Raises:
        422: Unreadable file or no data rows
    """
    try:
        content = await file.read()
        return get_order_import_service().start_session(
            content,
            file.filename,
            tenant_id=_tenant(x_tenant_id),
        )
    except Exception as e:
        logger.error("order_import_upload_failed", filename=file.filename, error=str(e))
        return _handle_error(e)


@router.get("/{session_id}", response_model=ImportPreview)
async def get_import_preview(session_id: str):
    """
    Current state of an import session.

    Raises:
        404: Session expired or unknown
    """
    try:
        return get_order_import_service().get_preview(session_id)
    except Exception as e:
        return _handle_error(e)


@router.put("/{session_id}/mapping", response_model=ImportPreview)
async def update_import_mapping(session_id: str, update: MappingUpdate):
    """
    Update column mapping, value mappings or wizard flags.

    Only provided fields change. Validation is recomputed and the new
    preview returned.

    Raises:
        404: Session expired or unknown
        422: Unknown field key or column
    """
    try:
        return get_order_import_service().update_mapping(session_id, update)
    except Exception as e:
        return _handle_error(e)


@router.get("/{session_id}/errors.csv")
async def download_import_errors(session_id: str):
    """
    Download the session's row errors as CSV (row,error).

    Raises:
        404: Session expired or unknown
    """
    try:
        csv_text = get_order_import_service().export_errors(session_id)
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{ERRORS_FILENAME}"'},
        )
    except Exception as e:
        return _handle_error(e)


@router.post("/{session_id}/confirm", response_model=OrderImportResult)
async def confirm_import(
    session_id: str,
    request: Optional[ImportConfirmRequest] = None,
    x_user_name: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
):
    """
    Commit the session's rows.

    Orders are upserted by order number. The session is removed only on
    success so a failed import can be retried. X-User-Name and X-User-Role
    identify the author of comments created from the Notes column.

    Raises:
        404: Session expired or unknown
        409: Import already running
        422: Unmapped required fields, row errors, or unacknowledged large batch
        500: Database error
        502: Hierarchy items could not be created
        504: Import timed out
    """
    try:
        acknowledge = request.acknowledge_large_import if request else False
        return await get_order_import_service().confirm(
            session_id,
            acknowledge_large_import=acknowledge,
            author_name=x_user_name,
            author_role=x_user_role,
        )
    except Exception as e:
        logger.error("order_import_confirm_failed", session_id=session_id, error=str(e))
        return _handle_error(e)


@router.delete("/{session_id}", status_code=204, response_class=Response)
async def cancel_import(session_id: str):
    """Discard an import session."""
    try:
        get_order_import_service().cancel(session_id)
        return Response(status_code=204)
    except Exception as e:
        return _handle_error(e)
