"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Buyer, approver, and warehouse clients all need to react to failures
precisely: a supplier mismatch is shown differently from an illegal
transition, and neither looks like a catalog outage.  Callers therefore
catch by TYPE and read a machine-readable CODE, never parse messages.

    try:
        store.add_line_item(po_id, item_id, 2, snapshot)
    except SupplierMismatchError as e:
        api_response(409, code=e.code, po_supplier=e.po_supplier_code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ProcurementError:

    ProcurementError (base)
    |
    +-- ValidationError                      -> client error (400)
    |   +-- InvalidQuantityError
    |   +-- InvalidTransitionError
    |   +-- EmptyPurchaseOrderError
    |   +-- EmptyHeaderUpdateError
    |
    +-- NotFoundError                        -> client error (404)
    |   +-- PurchaseOrderNotFoundError
    |   +-- LineItemNotFoundError
    |   +-- CatalogItemNotFoundError
    |
    +-- ConflictError                        -> client error (409)
    |   +-- SupplierMismatchError
    |   +-- PurchaseOrderNotDraftError
    |
    +-- UpstreamError                        -> dependency failure
    |   +-- UpstreamUnavailableError         (502, message generalized)
    |   +-- UpstreamRequestError             (upstream 4xx, message kept)
    |
    +-- ImmutabilityViolationError           -> programming error (500)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|-------------------------------------
Validation   | VALIDATION_ERROR         | Bad input shape / empty required field
             | INVALID_QUANTITY         | Quantity not an integer in 1..2**31-1
             | INVALID_TRANSITION       | Status pair not in the lifecycle graph
             | EMPTY_PURCHASE_ORDER     | Submit with no line items
             | EMPTY_HEADER_UPDATE      | Header patch with no allowed field
-------------|--------------------------|-------------------------------------
Not found    | PURCHASE_ORDER_NOT_FOUND | PO id does not exist
             | LINE_ITEM_NOT_FOUND      | Line absent or not owned by the PO
             | CATALOG_ITEM_NOT_FOUND   | Catalog returned 404 for the item
-------------|--------------------------|-------------------------------------
Conflict     | SUPPLIER_MISMATCH        | Item supplier != PO supplier
             | PO_NOT_DRAFT             | Mutation attempted outside DRAFT
-------------|--------------------------|-------------------------------------
Upstream     | UPSTREAM_UNAVAILABLE     | Catalog unreachable, timed out, 5xx
             | UPSTREAM_REQUEST_ERROR   | Catalog answered with another 4xx
-------------|--------------------------|-------------------------------------
Immutability | IMMUTABILITY_VIOLATION   | Timeline entry updated or deleted

===============================================================================
DESIGN DECISIONS
===============================================================================

1. The category base classes (ValidationError, NotFoundError, ...) are what
   the request layer maps to status codes.  Concrete classes only add a
   code and structured attributes.

2. ``code`` is a class attribute so it can be read without instantiation
   (e.g. ``SupplierMismatchError.code`` in API docs and tests).

3. Every piece of context is stored as an attribute.  The structured log
   formatter copies public attributes into ``exc_*`` fields.
"""


class ProcurementError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_ERROR"


# Validation errors


class ValidationError(ProcurementError):
    """Bad input shape, illegal transition, or empty required field."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Line quantity must be an integer between 1 and 2**31 - 1."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"quantity must be an integer between 1 and 2147483647, got {quantity!r}")


class InvalidTransitionError(ValidationError):
    """The requested status change is not in the lifecycle graph."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, po_id: str, from_status: str, to_status: str):
        self.po_id = po_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition: {from_status} → {to_status}")


class EmptyPurchaseOrderError(ValidationError):
    """A purchase order cannot be submitted without line items."""

    code: str = "EMPTY_PURCHASE_ORDER"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__("Cannot submit PO with no line items")


class EmptyHeaderUpdateError(ValidationError):
    """A header update must set at least one allowed field."""

    code: str = "EMPTY_HEADER_UPDATE"

    def __init__(self):
        super().__init__("No valid fields to update")


# Not-found errors


class NotFoundError(ProcurementError):
    """Entity absent, or not owned by the given parent."""

    code: str = "NOT_FOUND"


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__("Purchase order not found")


class LineItemNotFoundError(NotFoundError):
    """Line item does not exist on the given purchase order."""

    code: str = "LINE_ITEM_NOT_FOUND"

    def __init__(self, po_id: str, line_id: str):
        self.po_id = po_id
        self.line_id = line_id
        super().__init__("Line item not found")


class CatalogItemNotFoundError(NotFoundError):
    """The catalog subsystem does not know the item."""

    code: str = "CATALOG_ITEM_NOT_FOUND"

    def __init__(self, catalog_item_id: str):
        self.catalog_item_id = catalog_item_id
        super().__init__(f'Catalog item "{catalog_item_id}" not found')


# Conflict errors


class ConflictError(ProcurementError):
    """The request conflicts with the current state of the aggregate."""

    code: str = "CONFLICT"


class SupplierMismatchError(ConflictError):
    """
    Catalog item belongs to a different supplier than the purchase order.

    A PO is an order to exactly one supplier; items are never split
    silently across suppliers.
    """

    code: str = "SUPPLIER_MISMATCH"

    def __init__(self, po_id: str, po_supplier_code: str, item_supplier_code: str):
        self.po_id = po_id
        self.po_supplier_code = po_supplier_code
        self.item_supplier_code = item_supplier_code
        super().__init__(
            f'Supplier mismatch: PO is for "{po_supplier_code}", '
            f'item belongs to "{item_supplier_code}"'
        )


class PurchaseOrderNotDraftError(ConflictError):
    """Header, lines, and deletion are only allowed while DRAFT."""

    code: str = "PO_NOT_DRAFT"

    def __init__(self, po_id: str, status: str, action: str):
        self.po_id = po_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action}: purchase order is {status}, not DRAFT"
        )


# Upstream (dependency) errors


class UpstreamError(ProcurementError):
    """A collaborator subsystem failed; distinct from caller input errors."""

    code: str = "UPSTREAM_ERROR"


class UpstreamUnavailableError(UpstreamError):
    """
    The catalog subsystem is unreachable, timed out, or failed server-side.

    ``upstream_status`` is None for transport failures.
    """

    code: str = "UPSTREAM_UNAVAILABLE"

    def __init__(self, message: str, upstream_status: int | None = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class UpstreamRequestError(UpstreamError):
    """
    The catalog subsystem rejected the request with a 4xx other than 404.

    The upstream message and status are passed through unchanged.
    """

    code: str = "UPSTREAM_REQUEST_ERROR"

    def __init__(self, message: str, upstream_status: int):
        self.upstream_status = upstream_status
        super().__init__(message)


# Immutability errors


class ImmutabilityViolationError(ProcurementError):
    """Attempt to modify an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
