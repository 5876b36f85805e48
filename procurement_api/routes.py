"""
Purchase order routes.

Thin mapping from HTTP to the store, the status engine and the procurement
facade.  No business rule lives here: every precondition is checked by the
kernel, under the purchase order lock, and surfaces as a typed exception that
``procurement_api.errors`` maps to a status code.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from procurement_api.container import ServiceContainer
from procurement_api.schemas import (
    AddLineIn,
    CreateDraftIn,
    LineItemOut,
    LineItemsOut,
    PurchaseOrderListOut,
    PurchaseOrderOut,
    TransitionIn,
    UpdateLineIn,
)
from procurement_kernel.domain.dtos import HeaderUpdate
from procurement_kernel.logging_config import LogContext

router = APIRouter(prefix="/api/procurement/purchase-orders", tags=["purchase-orders"])


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _po(view) -> PurchaseOrderOut:
    return PurchaseOrderOut.model_validate(view)


# ---------------------------------------------------------
# Drafts
# ---------------------------------------------------------


@router.post("", response_model=PurchaseOrderOut, status_code=status.HTTP_201_CREATED)
def create_draft(
    body: CreateDraftIn,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    view = container.store.create_draft(
        body.supplier_code,
        body.supplier_name,
        idempotency_key=body.idempotency_key,
    )
    return _po(view)


@router.get("", response_model=PurchaseOrderListOut)
def list_purchase_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderListOut:
    result = container.store.list(status=status_filter, page=page, limit=limit)
    return PurchaseOrderListOut.model_validate(result)


@router.get("/{po_id}", response_model=PurchaseOrderOut)
def get_purchase_order(
    po_id: str,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    return _po(container.store.find_by_id(po_id))


@router.patch("/{po_id}", response_model=PurchaseOrderOut)
def update_header(
    po_id: str,
    body: Dict[str, Any] = Body(...),
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    with LogContext.bind(po_id=po_id):
        view = container.store.update_draft_header(po_id, HeaderUpdate.from_mapping(body))
    return _po(view)


@router.delete("/{po_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_draft(
    po_id: str,
    container: ServiceContainer = Depends(get_container),
) -> Response:
    with LogContext.bind(po_id=po_id):
        container.store.delete_draft(po_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------
# Lines
# ---------------------------------------------------------


@router.get("/{po_id}/lines", response_model=LineItemsOut)
def list_lines(
    po_id: str,
    container: ServiceContainer = Depends(get_container),
) -> LineItemsOut:
    return LineItemsOut(line_items=[
        LineItemOut.model_validate(line) for line in container.store.list_lines(po_id)
    ])


@router.post("/{po_id}/lines", response_model=LineItemOut, status_code=status.HTTP_201_CREATED)
def add_line(
    po_id: str,
    body: AddLineIn,
    container: ServiceContainer = Depends(get_container),
) -> LineItemOut:
    with LogContext.bind(po_id=po_id):
        line = container.service.add_catalog_line(po_id, body.catalog_item_id, body.quantity)
    return LineItemOut.model_validate(line)


@router.patch("/{po_id}/lines/{line_id}", response_model=LineItemOut)
def update_line(
    po_id: str,
    line_id: str,
    body: UpdateLineIn,
    container: ServiceContainer = Depends(get_container),
) -> LineItemOut:
    with LogContext.bind(po_id=po_id):
        line = container.store.update_line_item(po_id, line_id, body.quantity)
    return LineItemOut.model_validate(line)


@router.delete("/{po_id}/lines/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_line(
    po_id: str,
    line_id: str,
    delete_empty_draft: bool = Query(False, alias="deleteEmptyDraft"),
    container: ServiceContainer = Depends(get_container),
) -> Response:
    with LogContext.bind(po_id=po_id):
        container.service.remove_line(po_id, line_id, delete_empty_draft=delete_empty_draft)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------


@router.post("/{po_id}/submit", response_model=PurchaseOrderOut)
def submit(
    po_id: str,
    body: Optional[TransitionIn] = None,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    body = body or TransitionIn()
    return _po(container.engine.submit(po_id, changed_by=body.changed_by, notes=body.notes))


@router.post("/{po_id}/approve", response_model=PurchaseOrderOut)
def approve(
    po_id: str,
    body: Optional[TransitionIn] = None,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    body = body or TransitionIn()
    return _po(container.engine.approve(po_id, changed_by=body.changed_by, notes=body.notes))


@router.post("/{po_id}/reject", response_model=PurchaseOrderOut)
def reject(
    po_id: str,
    body: Optional[TransitionIn] = None,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    body = body or TransitionIn()
    return _po(container.engine.reject(po_id, changed_by=body.changed_by, notes=body.notes))


@router.post("/{po_id}/fulfill", response_model=PurchaseOrderOut)
def fulfill(
    po_id: str,
    body: Optional[TransitionIn] = None,
    container: ServiceContainer = Depends(get_container),
) -> PurchaseOrderOut:
    body = body or TransitionIn()
    return _po(container.engine.fulfill(po_id, changed_by=body.changed_by, notes=body.notes))
