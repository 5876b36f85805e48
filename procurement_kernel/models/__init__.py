"""ORM models for the procurement kernel."""

from procurement_kernel.models.purchase_order import (
    POLineItem,
    POStatusTimelineEntry,
    PurchaseOrder,
)
from procurement_kernel.models.sequence import SequenceCounter

__all__ = [
    "PurchaseOrder",
    "POLineItem",
    "POStatusTimelineEntry",
    "SequenceCounter",
]
