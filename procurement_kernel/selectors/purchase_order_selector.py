"""
Module: procurement_kernel.selectors.purchase_order_selector
Responsibility: Read-only queries over purchase orders: single PO with lines
    and timeline, line listing, and the paginated summary list with derived
    line counts.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: never adds, deletes, flushes or commits.
    - DTO return convention: returns frozen dataclasses, not ORM rows.
    - ``line_count`` is derived by COUNT over po_line_items; it is not stored.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, lazyload

from procurement_kernel.domain.dtos import (
    LineItemView,
    PurchaseOrderSummary,
    PurchaseOrderView,
)
from procurement_kernel.domain.lifecycle import POStatus
from procurement_kernel.models.purchase_order import POLineItem, PurchaseOrder


class PurchaseOrderSelector:
    """
    Query surface for purchase order reads.

    Contract:
        Accepts a Session from the caller; the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def find(self, po_id: UUID) -> PurchaseOrderView | None:
        po = self.session.get(PurchaseOrder, po_id)
        return po.to_dto() if po is not None else None

    def lines(self, po_id: UUID) -> tuple[LineItemView, ...]:
        rows = self.session.execute(
            select(POLineItem)
            .where(POLineItem.po_id == po_id)
            .order_by(POLineItem.line_number)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def count(self, status: POStatus | None = None) -> int:
        stmt = select(func.count()).select_from(PurchaseOrder)
        if status is not None:
            stmt = stmt.where(PurchaseOrder.status == status.value)
        return self.session.execute(stmt).scalar_one()

    def page(
        self,
        status: POStatus | None = None,
        offset: int = 0,
        limit: int = 15,
    ) -> tuple[PurchaseOrderSummary, ...]:
        """Summaries ordered by updated_at descending, id as tiebreaker."""
        line_count = (
            select(func.count(POLineItem.id))
            .where(POLineItem.po_id == PurchaseOrder.id)
            .correlate(PurchaseOrder)
            .scalar_subquery()
        )
        stmt = (
            select(PurchaseOrder, line_count.label("line_count"))
            .options(lazyload(PurchaseOrder.line_items), lazyload(PurchaseOrder.timeline))
            .order_by(PurchaseOrder.updated_at.desc(), PurchaseOrder.id)
            .offset(offset)
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(PurchaseOrder.status == status.value)
        return tuple(
            po.to_summary(count) for po, count in self.session.execute(stmt).all()
        )
