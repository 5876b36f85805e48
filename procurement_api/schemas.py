"""
Request and response bodies for the purchase order HTTP surface.

Request bodies use the camelCase keys the buyer and approver clients send;
purchase order, line and timeline fields are returned in snake_case, with
the collection keys ``purchaseOrders``, ``lineItems`` and ``totalPages``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, StrictInt

from procurement_kernel.domain.lifecycle import POStatus


def _money_str(value: Decimal) -> str:
    cents = value.quantize(Decimal("0.01"))
    if cents == value:
        return str(cents)
    return format(value.normalize(), "f")


# Amounts travel as decimal strings, two places unless more are significant.
Money = Annotated[Decimal, PlainSerializer(_money_str, return_type=str, when_used="json")]


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ---------------------------------------------------------
# Requests
# ---------------------------------------------------------


class CreateDraftIn(_In):
    supplier_code: str = Field(alias="supplierCode")
    supplier_name: str = Field(alias="supplierName")
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")


class AddLineIn(_In):
    catalog_item_id: str = Field(alias="catalogItemId")
    quantity: StrictInt = 1


class UpdateLineIn(_In):
    quantity: StrictInt


class TransitionIn(_In):
    changed_by: Optional[str] = Field(default=None, alias="changedBy")
    notes: Optional[str] = None


# ---------------------------------------------------------
# Responses
# ---------------------------------------------------------


class LineItemOut(_Out):
    id: UUID
    po_id: UUID
    line_number: int
    catalog_item_id: str
    item_name: str
    item_model: Optional[str] = None
    manufacturer: Optional[str] = None
    unit_price: Money
    lead_time_days: Optional[int] = None
    in_stock: bool
    supplier_code: str
    quantity: int
    line_total: Money
    notes: Optional[str] = None
    created_at: datetime


class TimelineEntryOut(_Out):
    id: UUID
    po_id: UUID
    position: int
    from_status: Optional[POStatus] = None
    to_status: POStatus
    changed_by: str
    notes: Optional[str] = None
    changed_at: datetime


class PurchaseOrderSummaryOut(_Out):
    id: UUID
    po_number: Optional[str] = None
    status: POStatus
    supplier_code: str
    supplier_name: str
    total_amount: Money
    requestor: Optional[str] = None
    cost_center: Optional[str] = None
    needed_by_date: Optional[date] = None
    line_count: int
    created_at: datetime
    updated_at: datetime


class PurchaseOrderOut(_Out):
    id: UUID
    po_number: Optional[str] = None
    status: POStatus
    supplier_code: str
    supplier_name: str
    total_amount: Money
    requestor: Optional[str] = None
    cost_center: Optional[str] = None
    needed_by_date: Optional[date] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None
    line_count: int
    created_at: datetime
    updated_at: datetime
    line_items: List[LineItemOut] = Field(default_factory=list, alias="lineItems")
    timeline: List[TimelineEntryOut] = Field(default_factory=list)


class LineItemsOut(_Out):
    line_items: List[LineItemOut] = Field(alias="lineItems")


class PaginationOut(_Out):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")


class PurchaseOrderListOut(_Out):
    purchase_orders: List[PurchaseOrderSummaryOut] = Field(alias="purchaseOrders")
    pagination: PaginationOut


class HealthOut(BaseModel):
    service: str
    status: str
    db: str
    uptime: int
