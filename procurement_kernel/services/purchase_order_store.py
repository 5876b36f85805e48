"""
PurchaseOrderStore -- transactional repository for the purchase order aggregate.

Responsibility:
    Creates drafts, embeds catalog snapshots as line items, enforces the
    single-supplier rule, recomputes totals, edits DRAFT headers, deletes
    drafts, and appends status timeline entries.  Every mutation runs in its
    own transaction with the PO row locked for its whole duration.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the Status Transition
    Engine, the Catalog-Change Reconciler and the procurement facade.  Owns
    no process-wide state; the session factory and clock are injected.

Invariants enforced:
    - Single supplier: every line's ``supplier_code`` equals the PO's.
    - Total consistency: ``total_amount`` is the exact Decimal sum of
      ``quantity * unit_price`` over current lines, rewritten in the same
      transaction as every line mutation.
    - DRAFT-only mutation: lines, header and deletion require DRAFT, checked
      under the PO row lock.
    - Idempotent creation: at most one PO per idempotency key.
    - Append-only timeline: entries are only ever added, at position
      count + 1 under the PO lock.

Failure modes:
    - PurchaseOrderNotFoundError / LineItemNotFoundError: unknown ids.
    - PurchaseOrderNotDraftError: mutation outside DRAFT.
    - SupplierMismatchError: line supplier differs from PO supplier.
    - InvalidQuantityError / ValidationError: bad input.
    Every failure rolls the transaction back before propagating.
"""

import math
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Generator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from procurement_kernel.db.engine import session_scope
from procurement_kernel.db.immutability import register_immutability_listeners
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import (
    CatalogSnapshot,
    HeaderUpdate,
    LineItemView,
    Pagination,
    PurchaseOrderPage,
    PurchaseOrderView,
)
from procurement_kernel.domain.lifecycle import (
    CREATION_ACTOR,
    CREATION_NOTES,
    POStatus,
    parse_status,
)
from procurement_kernel.exceptions import (
    InvalidQuantityError,
    LineItemNotFoundError,
    PurchaseOrderNotDraftError,
    PurchaseOrderNotFoundError,
    SupplierMismatchError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.purchase_order import (
    POLineItem,
    POStatusTimelineEntry,
    PurchaseOrder,
)
from procurement_kernel.selectors.purchase_order_selector import PurchaseOrderSelector

logger = get_logger("services.purchase_order_store")

DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100

# Integer column range for quantities; BIGINT range for query offsets.
MAX_QUANTITY = 2**31 - 1
MAX_OFFSET = 2**63 - 1


def coerce_uuid(value: Any) -> UUID | None:
    """Parse an id, returning None when it cannot be a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def validate_quantity(quantity: Any) -> int:
    if (
        isinstance(quantity, bool)
        or not isinstance(quantity, int)
        or not 1 <= quantity <= MAX_QUANTITY
    ):
        raise InvalidQuantityError(quantity)
    return quantity


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


class PurchaseOrderStore:
    """
    Transactional repository for purchase orders.

    Contract:
        Each public method opens, commits and closes its own session.
        Methods return immutable DTOs, never ORM rows.

    Guarantees:
        - Every read-check-write locks the PO row (SELECT ... FOR UPDATE)
          before reading status, supplier or lines.
        - Mutations of different POs never contend for the same row lock.

    Non-goals:
        - Does NOT retry on lock contention or conflicts.
        - Does NOT fetch catalog data; snapshots arrive from the caller.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        register_immutability_listeners()

    @property
    def clock(self) -> Clock:
        return self._clock

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Open one commit-or-rollback unit of work."""
        with session_scope(self._session_factory) as session:
            yield session

    # ------------------------------------------------------------------
    # Locking helpers (shared with StatusTransitionEngine)
    # ------------------------------------------------------------------

    def lock(self, session: Session, po_id: Any) -> PurchaseOrder:
        """
        Acquire the exclusive row lock on a PO and return the fresh row.

        Raises:
            PurchaseOrderNotFoundError: If no PO has this id.
        """
        po_uuid = coerce_uuid(po_id)
        if po_uuid is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        po = session.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == po_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po

    def lock_draft(self, session: Session, po_id: Any, action: str) -> PurchaseOrder:
        po = self.lock(session, po_id)
        if not po.is_draft:
            raise PurchaseOrderNotDraftError(str(po.id), po.status, action)
        return po

    def append_timeline_entry(
        self,
        session: Session,
        po: PurchaseOrder,
        from_status: POStatus | None,
        to_status: POStatus,
        changed_by: str,
        notes: str | None,
    ) -> POStatusTimelineEntry:
        """
        Append one entry at the next position.  Caller holds the PO lock.
        """
        position = session.execute(
            select(func.count())
            .select_from(POStatusTimelineEntry)
            .where(POStatusTimelineEntry.po_id == po.id)
        ).scalar_one() + 1
        entry = POStatusTimelineEntry(
            position=position,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            changed_by=changed_by,
            notes=notes,
            changed_at=self._clock.now(),
        )
        po.timeline.append(entry)
        return entry

    @staticmethod
    def recompute_total(po: PurchaseOrder) -> Decimal:
        total = sum(
            (line.unit_price * line.quantity for line in po.line_items),
            Decimal("0"),
        )
        po.total_amount = total
        return total

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def create_draft(
        self,
        supplier_code: str,
        supplier_name: str,
        idempotency_key: str | None = None,
    ) -> PurchaseOrderView:
        """
        Create a DRAFT PO with its creation timeline entry.

        If ``idempotency_key`` was already used, the existing PO is returned
        unchanged: no new row and no new timeline entry.
        """
        _require_text("supplier_code", supplier_code)
        _require_text("supplier_name", supplier_name)
        idempotency_key = idempotency_key or None

        try:
            with self.transaction() as session:
                if idempotency_key is not None:
                    existing = self._find_by_idempotency_key(session, idempotency_key)
                    if existing is not None:
                        logger.info(
                            "po_draft_idempotent_replay",
                            extra={"po_id": str(existing.id)},
                        )
                        return existing.to_dto()

                now = self._clock.now()
                po = PurchaseOrder(
                    status=POStatus.DRAFT.value,
                    supplier_code=supplier_code,
                    supplier_name=supplier_name,
                    total_amount=Decimal("0"),
                    idempotency_key=idempotency_key,
                    line_counter=0,
                    created_at=now,
                    updated_at=now,
                )
                session.add(po)
                po.timeline.append(
                    POStatusTimelineEntry(
                        position=1,
                        from_status=None,
                        to_status=POStatus.DRAFT.value,
                        changed_by=CREATION_ACTOR,
                        notes=CREATION_NOTES,
                        changed_at=now,
                    )
                )
                session.flush()
                view = po.to_dto()
        except IntegrityError:
            if idempotency_key is None:
                raise
            # Lost the unique-key race to a concurrent create; return the winner.
            with self.transaction() as session:
                existing = self._find_by_idempotency_key(session, idempotency_key)
                if existing is None:
                    raise
                logger.info(
                    "po_draft_idempotent_race_resolved",
                    extra={"po_id": str(existing.id)},
                )
                return existing.to_dto()

        logger.info(
            "po_draft_created",
            extra={
                "po_id": str(view.id),
                "supplier_code": supplier_code,
                "idempotency_key": idempotency_key,
            },
        )
        return view

    @staticmethod
    def _find_by_idempotency_key(session: Session, key: str) -> PurchaseOrder | None:
        return session.execute(
            select(PurchaseOrder).where(PurchaseOrder.idempotency_key == key)
        ).scalar_one_or_none()

    def update_draft_header(self, po_id: Any, update: HeaderUpdate) -> PurchaseOrderView:
        """Apply the supplied header fields to a DRAFT PO."""
        changes = update.require_changes()
        with self.transaction() as session:
            po = self.lock_draft(session, po_id, "update header")
            for name, value in changes.items():
                setattr(po, name, value)
            po.updated_at = self._clock.now()
            session.flush()
            view = po.to_dto()

        logger.info(
            "po_header_updated",
            extra={"po_id": str(view.id), "fields": sorted(changes)},
        )
        return view

    def delete_draft(self, po_id: Any) -> None:
        """Delete a DRAFT PO with its lines and timeline."""
        with self.transaction() as session:
            po = self.lock_draft(session, po_id, "delete")
            session.delete(po)
            deleted_id = str(po.id)

        logger.info("po_draft_deleted", extra={"po_id": deleted_id})

    def delete_draft_if_empty(self, po_id: Any) -> bool:
        """
        Delete a PO only if it is still a DRAFT with no lines.

        Returns:
            True if the draft was deleted.
        """
        with self.transaction() as session:
            po = self.lock(session, po_id)
            if not po.is_draft or po.line_items:
                return False
            session.delete(po)
            deleted_id = str(po.id)

        logger.info("po_empty_draft_deleted", extra={"po_id": deleted_id})
        return True

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    def add_line_item(
        self,
        po_id: Any,
        catalog_item_id: str,
        quantity: int,
        snapshot: CatalogSnapshot,
    ) -> LineItemView:
        """
        Add a line built from a catalog snapshot to a DRAFT PO.

        The PO lock is held across the status check, the supplier check,
        the insert and the total recompute.
        """
        validate_quantity(quantity)
        _require_text("catalog_item_id", catalog_item_id)

        with self.transaction() as session:
            po = self.lock_draft(session, po_id, "add line item")
            if snapshot.supplier_code != po.supplier_code:
                logger.warning(
                    "po_supplier_mismatch",
                    extra={
                        "po_id": str(po.id),
                        "po_supplier_code": po.supplier_code,
                        "item_supplier_code": snapshot.supplier_code,
                        "catalog_item_id": catalog_item_id,
                    },
                )
                raise SupplierMismatchError(
                    str(po.id), po.supplier_code, snapshot.supplier_code,
                )

            now = self._clock.now()
            po.line_counter += 1
            line = POLineItem(
                line_number=po.line_counter,
                catalog_item_id=catalog_item_id,
                item_name=snapshot.name,
                item_model=snapshot.model,
                manufacturer=snapshot.manufacturer,
                unit_price=snapshot.unit_price,
                lead_time_days=snapshot.lead_time_days,
                in_stock=snapshot.in_stock,
                supplier_code=snapshot.supplier_code,
                quantity=quantity,
                created_at=now,
            )
            po.line_items.append(line)
            total = self.recompute_total(po)
            po.updated_at = now
            session.flush()
            view = line.to_dto()

        logger.info(
            "po_line_added",
            extra={
                "po_id": str(view.po_id),
                "line_id": str(view.id),
                "catalog_item_id": catalog_item_id,
                "quantity": quantity,
                "total_amount": total,
            },
        )
        return view

    def update_line_item(self, po_id: Any, line_id: Any, quantity: int) -> LineItemView:
        """Change the quantity of one line on a DRAFT PO."""
        validate_quantity(quantity)

        with self.transaction() as session:
            po = self.lock_draft(session, po_id, "update line item")
            line = self._owned_line(po, line_id)
            line.quantity = quantity
            total = self.recompute_total(po)
            po.updated_at = self._clock.now()
            session.flush()
            view = line.to_dto()

        logger.info(
            "po_line_updated",
            extra={
                "po_id": str(view.po_id),
                "line_id": str(view.id),
                "quantity": quantity,
                "total_amount": total,
            },
        )
        return view

    def remove_line_item(self, po_id: Any, line_id: Any) -> int:
        """
        Remove one line from a DRAFT PO.

        Returns:
            The number of lines left on the PO.
        """
        with self.transaction() as session:
            po = self.lock_draft(session, po_id, "remove line item")
            line = self._owned_line(po, line_id)
            po.line_items.remove(line)
            total = self.recompute_total(po)
            po.updated_at = self._clock.now()
            session.flush()
            remaining = len(po.line_items)
            log_po_id = str(po.id)

        logger.info(
            "po_line_removed",
            extra={
                "po_id": log_po_id,
                "line_id": str(line_id),
                "remaining_lines": remaining,
                "total_amount": total,
            },
        )
        return remaining

    @staticmethod
    def _owned_line(po: PurchaseOrder, line_id: Any) -> POLineItem:
        line_uuid = coerce_uuid(line_id)
        for line in po.line_items:
            if line.id == line_uuid:
                return line
        raise LineItemNotFoundError(str(po.id), str(line_id))

    def annotate_lines_for_catalog_item(self, catalog_item_id: str, note: str) -> int:
        """
        Write ``note`` on every DRAFT line that references the catalog item.

        Candidate POs are locked one by one in id order and re-checked for
        DRAFT under the lock; POs that left DRAFT meanwhile are skipped.

        Returns:
            Number of lines annotated.
        """
        annotated = 0
        with self.transaction() as session:
            candidate_ids = session.execute(
                select(PurchaseOrder.id)
                .join(POLineItem, POLineItem.po_id == PurchaseOrder.id)
                .where(
                    POLineItem.catalog_item_id == catalog_item_id,
                    PurchaseOrder.status == POStatus.DRAFT.value,
                )
                .distinct()
                .order_by(PurchaseOrder.id)
            ).scalars().all()

            for candidate_id in candidate_ids:
                po = self.lock(session, candidate_id)
                if not po.is_draft:
                    continue
                touched = 0
                for line in po.line_items:
                    if line.catalog_item_id == catalog_item_id:
                        line.notes = note
                        touched += 1
                if touched:
                    po.updated_at = self._clock.now()
                    annotated += touched
                    with LogContext.bind(po_id=str(po.id)):
                        logger.info(
                            "po_lines_annotated",
                            extra={
                                "catalog_item_id": catalog_item_id,
                                "lines": touched,
                            },
                        )

        return annotated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, po_id: Any) -> PurchaseOrderView:
        """Return a PO with its lines and timeline."""
        po_uuid = coerce_uuid(po_id)
        with self.transaction() as session:
            view = PurchaseOrderSelector(session).find(po_uuid) if po_uuid else None
        if view is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return view

    def list_lines(self, po_id: Any) -> tuple[LineItemView, ...]:
        """Lines of one PO in line-number order."""
        po_uuid = coerce_uuid(po_id)
        with self.transaction() as session:
            selector = PurchaseOrderSelector(session)
            if po_uuid is None or selector.find(po_uuid) is None:
                raise PurchaseOrderNotFoundError(str(po_id))
            return selector.lines(po_uuid)

    def list(
        self,
        status: "str | POStatus | None" = None,
        page: int = 1,
        limit: int | None = None,
    ) -> PurchaseOrderPage:
        """
        One page of PO summaries, most recently updated first.

        Raises:
            ValidationError: page < 1 or past the offset range, limit outside
                1..max, unknown status.
        """
        if limit is None:
            limit = self._default_page_size
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be an integer >= 1, got {page!r}")
        if (
            isinstance(limit, bool)
            or not isinstance(limit, int)
            or not 1 <= limit <= self._max_page_size
        ):
            raise ValidationError(
                f"limit must be an integer between 1 and {self._max_page_size}, "
                f"got {limit!r}"
            )
        if (page - 1) * limit > MAX_OFFSET:
            raise ValidationError(f"page {page} is out of range")
        status_filter: POStatus | None = None
        if status is not None and status != "":
            try:
                status_filter = parse_status(status)
            except ValueError:
                raise ValidationError(f"Unknown status: {status}") from None

        with self.transaction() as session:
            selector = PurchaseOrderSelector(session)
            total = selector.count(status_filter)
            summaries = selector.page(
                status_filter, offset=(page - 1) * limit, limit=limit,
            )

        return PurchaseOrderPage(
            purchase_orders=summaries,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )
