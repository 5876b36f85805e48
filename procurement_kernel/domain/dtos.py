"""
Domain DTOs for purchase orders.

Immutable value objects returned by the Store and Engine and accepted as
inputs.  ORM rows never leave a transaction; callers only ever see these.
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from procurement_kernel.domain.lifecycle import POStatus
from procurement_kernel.exceptions import EmptyHeaderUpdateError, ValidationError


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Catalog fields frozen into a line item when it is added.

    Later catalog changes never alter a stored snapshot.
    """
    name: str
    model: str | None
    manufacturer: str | None
    unit_price: Decimal
    lead_time_days: int | None
    in_stock: bool
    supplier_code: str


class _Unset:
    """Marker for a HeaderUpdate field the caller did not supply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class HeaderUpdate:
    """
    Explicit set of editable DRAFT header fields.

    A field left as UNSET is not touched; a field set to None clears it.
    ``total_amount``, ``status``, ``po_number`` and ``supplier_*`` are not
    part of the record and so can never be written through a header update.
    """
    requestor: str | None = UNSET
    cost_center: str | None = UNSET
    needed_by_date: date | None = UNSET
    payment_terms: str | None = UNSET
    notes: str | None = UNSET

    def __post_init__(self):
        for name in HEADER_TEXT_LIMITS:
            value = getattr(self, name)
            if value is not UNSET:
                _check_text(name, value)
        if self.needed_by_date is not UNSET and self.needed_by_date is not None:
            if not isinstance(self.needed_by_date, date) or isinstance(self.needed_by_date, datetime):
                raise ValidationError(
                    f"needed_by_date must be a date, got {self.needed_by_date!r}"
                )

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HeaderUpdate":
        """
        Build from a request body, ignoring keys that are not header fields.

        Raises:
            ValidationError: a text field is not a string (or null), is longer
                than its column, or ``needed_by_date`` is not an ISO date.
        """
        values: dict[str, Any] = {}
        for name in cls.field_names():
            if name in data:
                values[name] = data[name]
        if "needed_by_date" in values:
            values["needed_by_date"] = _coerce_date(values["needed_by_date"])
        return cls(**values)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly supplied, as a column -> value mapping."""
        return {
            name: getattr(self, name)
            for name in self.field_names()
            if getattr(self, name) is not UNSET
        }

    def require_changes(self) -> dict[str, Any]:
        changes = self.changes()
        if not changes:
            raise EmptyHeaderUpdateError()
        return changes


# Column widths of the text header fields; None is unbounded.
HEADER_TEXT_LIMITS: dict[str, int | None] = {
    "requestor": 255,
    "cost_center": 64,
    "payment_terms": 64,
    "notes": None,
}


def _check_text(name: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string or null, got {type(value).__name__}")
    limit = HEADER_TEXT_LIMITS[name]
    if limit is not None and len(value) > limit:
        raise ValidationError(f"{name} must be at most {limit} characters")


def _coerce_date(value: Any) -> date | None:
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass
    raise ValidationError(f"needed_by_date must be an ISO date, got {value!r}")


@dataclass(frozen=True)
class LineItemView:
    """A line item with its frozen catalog snapshot."""
    id: UUID
    po_id: UUID
    line_number: int
    catalog_item_id: str
    item_name: str
    item_model: str | None
    manufacturer: str | None
    unit_price: Decimal
    lead_time_days: int | None
    in_stock: bool
    supplier_code: str
    quantity: int
    notes: str | None
    created_at: datetime

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class TimelineEntryView:
    """One immutable audit record of a status change."""
    id: UUID
    po_id: UUID
    position: int
    from_status: POStatus | None
    to_status: POStatus
    changed_by: str
    notes: str | None
    changed_at: datetime


@dataclass(frozen=True)
class PurchaseOrderView:
    """A purchase order header with its lines and full timeline."""
    id: UUID
    po_number: str | None
    status: POStatus
    supplier_code: str
    supplier_name: str
    total_amount: Decimal
    requestor: str | None
    cost_center: str | None
    needed_by_date: date | None
    payment_terms: str | None
    notes: str | None
    idempotency_key: str | None
    created_at: datetime
    updated_at: datetime
    line_items: tuple[LineItemView, ...] = ()
    timeline: tuple[TimelineEntryView, ...] = ()

    @property
    def line_count(self) -> int:
        return len(self.line_items)


@dataclass(frozen=True)
class PurchaseOrderSummary:
    """List-view row: header fields plus the derived line count."""
    id: UUID
    po_number: str | None
    status: POStatus
    supplier_code: str
    supplier_name: str
    total_amount: Decimal
    requestor: str | None
    cost_center: str | None
    needed_by_date: date | None
    created_at: datetime
    updated_at: datetime
    line_count: int


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


@dataclass(frozen=True)
class PurchaseOrderPage:
    purchase_orders: tuple[PurchaseOrderSummary, ...]
    pagination: Pagination
