"""
StatusTransitionEngine -- validates and applies purchase order status changes.

Responsibility:
    Moves a PO through the fixed lifecycle graph.  ``submit`` is the only
    path out of DRAFT and the only place a PO number is allocated.  Every
    successful transition writes the new status and exactly one timeline
    entry in the same transaction, under the PO row lock.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates locking, timeline
    appends and transactions to PurchaseOrderStore; allocates PO numbers
    through SequenceService.

Invariants enforced:
    - Transition legality: only pairs in VALID_TRANSITIONS are applied.
    - PO number assigned exactly once, from the locked ``po_number`` counter.
    - A PO with no lines cannot be submitted.
    - Two concurrent transitions of the same PO serialize on the row lock;
      the loser re-reads the winner's status and is rejected.

Failure modes:
    - PurchaseOrderNotFoundError: unknown PO.
    - InvalidTransitionError: illegal (from, to) pair, names both statuses.
    - EmptyPurchaseOrderError: submit with no lines.
"""

from typing import Any

from procurement_kernel.domain.dtos import PurchaseOrderView
from procurement_kernel.domain.lifecycle import (
    PURCHASE_ORDER_WORKFLOW,
    POStatus,
    Workflow,
    is_transition_allowed,
    parse_status,
)
from procurement_kernel.domain.numbering import PO_NUMBER_SEQUENCE, format_po_number
from procurement_kernel.exceptions import (
    EmptyPurchaseOrderError,
    InvalidTransitionError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.purchase_order_store import PurchaseOrderStore
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.status_engine")


class StatusTransitionEngine:
    """
    Applies lifecycle transitions to purchase orders.

    Contract:
        Each call is one transaction.  Returns the PO as it stands after
        the transition, timeline included.

    Non-goals:
        - The graph is fixed; there is no runtime workflow configuration.
        - No automatic retry when a concurrent transition wins.
    """

    def __init__(self, store: PurchaseOrderStore, workflow: Workflow = PURCHASE_ORDER_WORKFLOW):
        self._store = store
        self._workflow = workflow

    def submit(
        self,
        po_id: Any,
        changed_by: str | None = None,
        notes: str | None = None,
    ) -> PurchaseOrderView:
        """
        DRAFT -> SUBMITTED, allocating the PO number.

        Preconditions: PO exists, is DRAFT, and has at least one line.
        Postconditions: status SUBMITTED, ``po_number`` set, one new
            DRAFT->SUBMITTED timeline entry.
        """
        transition = self._workflow.transition_for("submit")
        changed_by = changed_by or transition.default_actor
        notes = notes or transition.default_notes

        with LogContext.bind(po_id=str(po_id), actor=changed_by):
            with self._store.transaction() as session:
                po = self._store.lock(session, po_id)
                current = po.status_enum
                if current is not POStatus.DRAFT:
                    raise InvalidTransitionError(str(po.id), current.value, POStatus.SUBMITTED.value)
                if not po.line_items:
                    raise EmptyPurchaseOrderError(str(po.id))

                now = self._store.clock.now()
                sequence_value = SequenceService(session).next_value(PO_NUMBER_SEQUENCE)
                po.po_number = format_po_number(now.year, sequence_value)
                po.status = POStatus.SUBMITTED.value
                po.updated_at = now
                self._store.append_timeline_entry(
                    session, po, current, POStatus.SUBMITTED, changed_by, notes,
                )
                session.flush()
                view = po.to_dto()

            logger.info(
                "po_submitted",
                extra={
                    "po_number": view.po_number,
                    "line_count": view.line_count,
                    "total_amount": view.total_amount,
                },
            )
        return view

    def transition(
        self,
        po_id: Any,
        to_status: "str | POStatus",
        changed_by: str = "System",
        notes: str | None = None,
    ) -> PurchaseOrderView:
        """
        Apply one lifecycle transition other than submit.

        Raises:
            InvalidTransitionError: the pair is not in the graph, or the
                target is SUBMITTED (which must go through submit()).
            ValidationError: ``to_status`` is not a known status.
        """
        try:
            target = parse_status(to_status)
        except ValueError:
            raise ValidationError(f"Unknown status: {to_status}") from None

        if target is POStatus.SUBMITTED:
            return self.submit(po_id, changed_by=changed_by, notes=notes)

        with LogContext.bind(po_id=str(po_id), actor=changed_by):
            with self._store.transaction() as session:
                po = self._store.lock(session, po_id)
                current = po.status_enum
                if not is_transition_allowed(current, target):
                    logger.warning(
                        "po_transition_rejected",
                        extra={"from_status": current.value, "to_status": target.value},
                    )
                    raise InvalidTransitionError(str(po.id), current.value, target.value)

                po.status = target.value
                po.updated_at = self._store.clock.now()
                self._store.append_timeline_entry(
                    session, po, current, target, changed_by, notes,
                )
                session.flush()
                view = po.to_dto()

            logger.info(
                "po_status_changed",
                extra={"from_status": current.value, "to_status": target.value},
            )
        return view

    def _apply_action(
        self,
        action: str,
        po_id: Any,
        changed_by: str | None,
        notes: str | None,
    ) -> PurchaseOrderView:
        transition = self._workflow.transition_for(action)
        return self.transition(
            po_id,
            transition.to_state,
            changed_by=changed_by or transition.default_actor,
            notes=notes or transition.default_notes,
        )

    def approve(self, po_id: Any, changed_by: str | None = None, notes: str | None = None):
        return self._apply_action("approve", po_id, changed_by, notes)

    def reject(self, po_id: Any, changed_by: str | None = None, notes: str | None = None):
        return self._apply_action("reject", po_id, changed_by, notes)

    def fulfill(self, po_id: Any, changed_by: str | None = None, notes: str | None = None):
        return self._apply_action("fulfill", po_id, changed_by, notes)
