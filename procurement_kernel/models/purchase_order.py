"""
Module: procurement_kernel.models.purchase_order
Responsibility: ORM persistence for the purchase order aggregate: the
    ``PurchaseOrder`` root, its ``POLineItem`` rows, and its append-only
    ``POStatusTimelineEntry`` audit trail.
Architecture position: Kernel > Models.  Imported by services/ and
    selectors/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - ``po_number`` is unique when present (uq_purchase_orders_po_number).
    - ``idempotency_key`` is unique when present (uq_purchase_orders_idempotency_key).
    - Line numbers are unique per PO and come from ``line_counter``.
    - Timeline positions are unique per PO (uq_po_timeline_position).
    - Line items and timeline entries are owned by exactly one PO and are
      removed with it (ORM cascade plus ON DELETE CASCADE).

Not enforced here:
    - ``total_amount`` equals the sum of line totals.  The Store recomputes
      it in every line-mutating transaction.
    - Timeline immutability.  See db/immutability.py.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TimestampedBase, UUIDString
from procurement_kernel.domain.dtos import (
    LineItemView,
    PurchaseOrderSummary,
    PurchaseOrderView,
    TimelineEntryView,
)
from procurement_kernel.domain.lifecycle import POStatus


class PurchaseOrder(TimestampedBase):
    """
    Aggregate root for an equipment order to exactly one supplier.

    Guarantees:
        - ``status`` is one of the POStatus values.
        - ``supplier_code``/``supplier_name`` are set at creation and never
          change.
        - ``line_counter`` only increases; removed line numbers are not reused.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
        UniqueConstraint("idempotency_key", name="uq_purchase_orders_idempotency_key"),
        Index("idx_purchase_orders_status", "status"),
        Index("idx_purchase_orders_updated_at", "updated_at"),
    )

    po_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=POStatus.DRAFT.value,
    )
    supplier_code: Mapped[str] = mapped_column(String(64), nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    requestor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(64), nullable=True)
    needed_by_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    line_counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    line_items: Mapped[list["POLineItem"]] = relationship(
        "POLineItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="POLineItem.line_number",
        lazy="selectin",
    )

    timeline: Mapped[list["POStatusTimelineEntry"]] = relationship(
        "POStatusTimelineEntry",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="POStatusTimelineEntry.position",
        lazy="selectin",
    )

    @property
    def status_enum(self) -> POStatus:
        return POStatus(self.status)

    @property
    def is_draft(self) -> bool:
        return self.status == POStatus.DRAFT.value

    def to_dto(self) -> PurchaseOrderView:
        return PurchaseOrderView(
            id=self.id,
            po_number=self.po_number,
            status=self.status_enum,
            supplier_code=self.supplier_code,
            supplier_name=self.supplier_name,
            total_amount=self.total_amount,
            requestor=self.requestor,
            cost_center=self.cost_center,
            needed_by_date=self.needed_by_date,
            payment_terms=self.payment_terms,
            notes=self.notes,
            idempotency_key=self.idempotency_key,
            created_at=self.created_at,
            updated_at=self.updated_at,
            line_items=tuple(line.to_dto() for line in self.line_items),
            timeline=tuple(entry.to_dto() for entry in self.timeline),
        )

    def to_summary(self, line_count: int) -> PurchaseOrderSummary:
        return PurchaseOrderSummary(
            id=self.id,
            po_number=self.po_number,
            status=self.status_enum,
            supplier_code=self.supplier_code,
            supplier_name=self.supplier_name,
            total_amount=self.total_amount,
            requestor=self.requestor,
            cost_center=self.cost_center,
            needed_by_date=self.needed_by_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            line_count=line_count,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.po_number or self.id} [{self.status}]>"


class POLineItem(Base):
    """
    One catalog item on a purchase order, with its frozen snapshot.

    Guarantees:
        - Snapshot columns are written once, at insert.  Only ``quantity``
          and ``notes`` change afterwards.
        - ``supplier_code`` equals the owning PO's ``supplier_code``.
    """

    __tablename__ = "po_line_items"

    __table_args__ = (
        UniqueConstraint("po_id", "line_number", name="uq_po_line_number"),
        Index("idx_po_line_items_po", "po_id"),
        Index("idx_po_line_items_catalog_item", "catalog_item_id"),
    )

    po_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    catalog_item_id: Mapped[str] = mapped_column(String(64), nullable=False)

    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supplier_code: Mapped[str] = mapped_column(String(64), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    purchase_order: Mapped["PurchaseOrder"] = relationship(
        "PurchaseOrder",
        back_populates="line_items",
    )

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dto(self) -> LineItemView:
        return LineItemView(
            id=self.id,
            po_id=self.po_id,
            line_number=self.line_number,
            catalog_item_id=self.catalog_item_id,
            item_name=self.item_name,
            item_model=self.item_model,
            manufacturer=self.manufacturer,
            unit_price=self.unit_price,
            lead_time_days=self.lead_time_days,
            in_stock=self.in_stock,
            supplier_code=self.supplier_code,
            quantity=self.quantity,
            notes=self.notes,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<POLineItem {self.line_number} {self.catalog_item_id} x{self.quantity}>"


class POStatusTimelineEntry(Base):
    """
    Immutable audit record of one status change.

    Guarantees:
        - Never updated.  Deleted only together with its DRAFT PO.
        - ``position`` is 1 for the creation entry and increases by one per
          transition.
        - ``from_status`` is None only for the creation entry.
    """

    __tablename__ = "po_status_timeline"

    __table_args__ = (
        UniqueConstraint("po_id", "position", name="uq_po_timeline_position"),
        Index("idx_po_status_timeline_po", "po_id"),
    )

    po_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    to_status: Mapped[str] = mapped_column(String(16), nullable=False)
    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(nullable=False)

    purchase_order: Mapped["PurchaseOrder"] = relationship(
        "PurchaseOrder",
        back_populates="timeline",
    )

    def to_dto(self) -> TimelineEntryView:
        return TimelineEntryView(
            id=self.id,
            po_id=self.po_id,
            position=self.position,
            from_status=POStatus(self.from_status) if self.from_status else None,
            to_status=POStatus(self.to_status),
            changed_by=self.changed_by,
            notes=self.notes,
            changed_at=self.changed_at,
        )

    def __repr__(self) -> str:
        return (
            f"<POStatusTimelineEntry #{self.position} "
            f"{self.from_status} -> {self.to_status}>"
        )
