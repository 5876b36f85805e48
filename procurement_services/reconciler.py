"""
CatalogChangeReconciler -- applies catalog-change events to draft purchase orders.

Responsibility:
    Decide what a catalog event means for procurement data and perform the
    store write.  Transport concerns (connection, ack, requeue) live in
    event_consumer.py; this module is pure handling and is called once per
    delivered message.

Event handling:
    catalog.item.discontinued  -> annotate every DRAFT line for the item
    catalog.item.updated       -> logged only; snapshots are frozen
    anything else / no itemId  -> logged and dropped (acknowledged)

Failure modes:
    Any exception from the store propagates; the consumer requeues the
    message so delivery is at-least-once.  Handling is idempotent: writing
    the same note twice leaves the same state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.purchase_order_store import PurchaseOrderStore

logger = get_logger("services.reconciler")

ITEM_UPDATED = "catalog.item.updated"
ITEM_DISCONTINUED = "catalog.item.discontinued"

DISCONTINUED_NOTE = "ITEM DISCONTINUED — review required"


class EventOutcome(str, Enum):
    """What the reconciler did with one event."""
    ANNOTATED = "annotated"
    IGNORED = "ignored"
    DROPPED = "dropped"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: EventOutcome
    lines_annotated: int = 0


class CatalogChangeReconciler:
    """
    Handles catalog events against the purchase order store.

    Guarantees:
        - Only DRAFT POs are touched; submitted and later POs keep their
          lines exactly as submitted.
        - No line is deleted and no status changes.
    """

    ROUTING_KEYS: tuple[str, ...] = (ITEM_UPDATED, ITEM_DISCONTINUED)

    def __init__(self, store: PurchaseOrderStore):
        self._store = store

    def handle(self, routing_key: str, payload: Any) -> ReconcileResult:
        with LogContext.bind(routing_key=routing_key):
            item_id = _item_id(payload)
            if item_id is None:
                logger.warning("catalog_event_missing_item_id")
                return ReconcileResult(EventOutcome.DROPPED)

            logger.info("catalog_event_received", extra={"catalog_item_id": item_id})

            if routing_key == ITEM_DISCONTINUED:
                count = self._store.annotate_lines_for_catalog_item(
                    item_id, DISCONTINUED_NOTE,
                )
                logger.info(
                    "catalog_event_processed",
                    extra={"catalog_item_id": item_id, "lines_annotated": count},
                )
                return ReconcileResult(EventOutcome.ANNOTATED, count)

            if routing_key == ITEM_UPDATED:
                logger.info(
                    "catalog_event_processed",
                    extra={"catalog_item_id": item_id, "lines_annotated": 0},
                )
                return ReconcileResult(EventOutcome.IGNORED)

            logger.warning(
                "catalog_event_unknown_routing_key",
                extra={"catalog_item_id": item_id},
            )
            return ReconcileResult(EventOutcome.DROPPED)


def _item_id(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    item_id = payload.get("itemId")
    if item_id is None or isinstance(item_id, bool):
        return None
    item_id = str(item_id).strip()
    return item_id or None
