"""
Kernel services - the imperative shell around the purchase order aggregate.

Services:
- PurchaseOrderStore: transactional repository, single-supplier and total rules
- StatusTransitionEngine: lifecycle transitions and PO numbering
- SequenceService: locked counter rows for monotonic numbering
"""

from procurement_kernel.services.purchase_order_store import PurchaseOrderStore
from procurement_kernel.services.sequence_service import SequenceService
from procurement_kernel.services.status_engine import StatusTransitionEngine

__all__ = [
    "PurchaseOrderStore",
    "SequenceService",
    "StatusTransitionEngine",
]
