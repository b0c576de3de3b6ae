"""
Order schemas and enums.

Order rows are written to the `orders` table by the Excel import.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import BaseSchema


class OrderStatus(str, Enum):
    """Order workflow status."""
    DRAFT = "draft"
    READY_FOR_ENGINEERING = "ready_for_engineering"
    IN_ENGINEERING = "in_engineering"
    ENGINEERING_BLOCKED = "engineering_blocked"
    READY_FOR_PRODUCTION = "ready_for_production"
    IN_PRODUCTION = "in_production"


class Priority(str, Enum):
    """Order priority."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


DEFAULT_STATUS = OrderStatus.DRAFT
DEFAULT_PRIORITY = Priority.NORMAL


class OrderField(str, Enum):
    """Logical order fields a workbook column can be mapped to."""
    ORDER_NUMBER = "orderNumber"
    CUSTOMER_NAME = "customerName"
    DUE_DATE = "dueDate"
    CUSTOMER_EMAIL = "customerEmail"
    PRODUCT_NAME = "productName"
    QUANTITY = "quantity"
    PRIORITY = "priority"
    STATUS = "status"
    NOTES = "notes"

    @property
    def label(self) -> str:
        return FIELD_LABELS[self]

    @property
    def required(self) -> bool:
        return self in REQUIRED_FIELDS


FIELD_LABELS: dict[OrderField, str] = {
    OrderField.ORDER_NUMBER: "Order #",
    OrderField.CUSTOMER_NAME: "Customer Name",
    OrderField.DUE_DATE: "Due Date",
    OrderField.CUSTOMER_EMAIL: "Customer Email",
    OrderField.PRODUCT_NAME: "Product",
    OrderField.QUANTITY: "Quantity",
    OrderField.PRIORITY: "Priority",
    OrderField.STATUS: "Status",
    OrderField.NOTES: "Notes",
}

REQUIRED_FIELDS: tuple[OrderField, ...] = (
    OrderField.ORDER_NUMBER,
    OrderField.CUSTOMER_NAME,
    OrderField.DUE_DATE,
)

OPTIONAL_FIELDS: tuple[OrderField, ...] = (
    OrderField.CUSTOMER_EMAIL,
    OrderField.PRODUCT_NAME,
    OrderField.QUANTITY,
    OrderField.PRIORITY,
    OrderField.STATUS,
    OrderField.NOTES,
)


class BulkImportSummary(BaseSchema):
    """Outcome of a bulk order upsert."""

    inserted: int = Field(0, ge=0, description="Orders that did not exist before")
    updated: int = Field(0, ge=0, description="Orders matched by order number and overwritten")
    chunks_committed: int = Field(0, ge=0, description="Upsert requests that completed")
    chunks_total: int = Field(0, ge=0, description="Upsert requests planned")
    comments_created: int = Field(0, ge=0, description="Order comments created from Notes")

    @property
    def total(self) -> int:
        return self.inserted + self.updated


class OrderImportResult(BaseSchema):
    """Response from confirming an import session."""

    success: bool
    inserted: int
    updated: int
    hierarchy_nodes_created: int = 0
    message: str
    tenant_id: Optional[str] = None
