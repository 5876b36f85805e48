"""
Pure domain layer.

Data transfer objects, the lifecycle graph, PO numbering and the clock
abstraction, with NO dependencies on the ORM, the database or I/O.
"""

from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.dtos import (
    UNSET,
    CatalogSnapshot,
    HeaderUpdate,
    LineItemView,
    Pagination,
    PurchaseOrderPage,
    PurchaseOrderSummary,
    PurchaseOrderView,
    TimelineEntryView,
)
from procurement_kernel.domain.lifecycle import (
    PURCHASE_ORDER_WORKFLOW,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    POStatus,
    Transition,
    Workflow,
    is_transition_allowed,
    parse_status,
)
from procurement_kernel.domain.numbering import PO_NUMBER_SEQUENCE, format_po_number

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "UNSET",
    "CatalogSnapshot",
    "HeaderUpdate",
    "LineItemView",
    "Pagination",
    "PurchaseOrderPage",
    "PurchaseOrderSummary",
    "PurchaseOrderView",
    "TimelineEntryView",
    "PURCHASE_ORDER_WORKFLOW",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "POStatus",
    "Transition",
    "Workflow",
    "is_transition_allowed",
    "parse_status",
    "PO_NUMBER_SEQUENCE",
    "format_po_number",
]
