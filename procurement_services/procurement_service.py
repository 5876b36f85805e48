"""
ProcurementService -- orchestration across the fetcher, store and engine.

Responsibility:
    Compose calls that span more than one component, so the request layer
    stays a thin mapping.  Holds no state of its own.

Ordering rule for add-line:
    The catalog lookup happens BEFORE any purchase order lock is taken; the
    store then re-validates DRAFT status and supplier under the lock.  A
    slow catalog therefore never holds a row lock.
"""

from typing import Any

from procurement_kernel.domain.dtos import LineItemView
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.purchase_order_store import (
    PurchaseOrderStore,
    validate_quantity,
)
from procurement_kernel.services.status_engine import StatusTransitionEngine
from procurement_services.catalog_client import CatalogClient

logger = get_logger("services.procurement")


class ProcurementService:
    """Facade used by the HTTP layer for multi-component operations."""

    def __init__(
        self,
        store: PurchaseOrderStore,
        engine: StatusTransitionEngine,
        catalog: CatalogClient,
    ):
        self.store = store
        self.engine = engine
        self.catalog = catalog

    def add_catalog_line(
        self,
        po_id: Any,
        catalog_item_id: str,
        quantity: int = 1,
    ) -> LineItemView:
        """Fetch a fresh snapshot, then add it as a line under the PO lock."""
        validate_quantity(quantity)
        logger.debug(
            "po_catalog_line_requested",
            extra={
                "po_id": str(po_id),
                "catalog_item_id": catalog_item_id,
                "quantity": quantity,
            },
        )
        snapshot = self.catalog.fetch_snapshot(catalog_item_id)
        return self.store.add_line_item(po_id, catalog_item_id, quantity, snapshot)

    def remove_line(
        self,
        po_id: Any,
        line_id: Any,
        delete_empty_draft: bool = False,
    ) -> bool:
        """
        Remove a line; optionally delete the draft once it has no lines left.

        Returns:
            True if the draft itself was deleted.
        """
        remaining = self.store.remove_line_item(po_id, line_id)
        if not delete_empty_draft or remaining:
            return False
        # Re-checked under the lock: a concurrent add keeps the draft alive.
        return self.store.delete_draft_if_empty(po_id)
