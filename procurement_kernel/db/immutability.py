"""
ORM-Level Immutability Enforcement for the status timeline.

===============================================================================
WHY THIS EXISTS
===============================================================================

The status timeline is the audit trail of every purchase order: who moved
it, from where, to where, and when.  The Store and Engine only ever INSERT
timeline rows.  This module is the second guard: if any code path tries to
UPDATE a timeline entry, or DELETE one outside of deleting its whole DRAFT
purchase order, the flush is aborted before SQL reaches the database.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_flush]  --> collect ids of PurchaseOrders marked deleted
         |
         v
    [before_update] --> _check_timeline_entry_update() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_timeline_entry_delete() --> ImmutabilityViolationError
         |                 (allowed when the owning PO is in the deleted set)
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable      | Exception
-----------------------|---------------------|----------------------------------
POStatusTimelineEntry  | ALWAYS              | Deleted with its DRAFT PO

===============================================================================
USAGE
===============================================================================

Called automatically by the Store and the application startup:

    from procurement_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

To temporarily disable (TESTS ONLY - never in production):

    from procurement_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.purchase_order import (
    POStatusTimelineEntry,
    PurchaseOrder,
)

logger = get_logger("db.immutability")

_DELETED_PO_IDS_KEY = "procurement_deleted_po_ids"


def _record_deleted_purchase_orders(session, flush_context, instances):
    """
    Remember which purchase orders this flush deletes.

    Runs in SessionEvents.before_flush, before mapper-level delete events,
    so _check_timeline_entry_delete can tell a cascading delete of a whole
    DRAFT from a stray delete of a single entry.
    """
    session.info[_DELETED_PO_IDS_KEY] = {
        obj.id for obj in session.deleted if isinstance(obj, PurchaseOrder)
    }


def _clear_deleted_purchase_orders(session, flush_context):
    session.info.pop(_DELETED_PO_IDS_KEY, None)


def _check_timeline_entry_update(mapper, connection, target):
    """Prevent any update to a timeline entry."""
    state = inspect(target)
    changed = [
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    ]
    if not changed:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "POStatusTimelineEntry",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="POStatusTimelineEntry",
        entity_id=str(target.id),
        reason="Timeline entries are immutable and cannot be modified",
    )


def _check_timeline_entry_delete(mapper, connection, target):
    """Allow deletion only as part of deleting the owning purchase order."""
    session = Session.object_session(target)
    deleted_po_ids = session.info.get(_DELETED_PO_IDS_KEY, set()) if session else set()
    if target.po_id in deleted_po_ids:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "POStatusTimelineEntry",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="POStatusTimelineEntry",
        entity_id=str(target.id),
        reason="Timeline entries cannot be deleted",
    )


_LISTENERS = (
    (Session, "before_flush", _record_deleted_purchase_orders),
    (Session, "after_flush_postexec", _clear_deleted_purchase_orders),
    (POStatusTimelineEntry, "before_update", _check_timeline_entry_update),
    (POStatusTimelineEntry, "before_delete", _check_timeline_entry_delete),
)


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    for target, event_name, listener_fn in _LISTENERS:
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this for testing purposes.
    """
    for target, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(target, event_name, listener_fn)
    logger.debug("immutability_listeners_unregistered")
