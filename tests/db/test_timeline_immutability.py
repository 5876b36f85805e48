"""
ORM guard on the status timeline.

Timeline entries can be inserted, and deleted together with their DRAFT
purchase order, but never updated or deleted on their own.
"""

import pytest
from sqlalchemy import select

from procurement_kernel.db.engine import session_scope
from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.models import POStatusTimelineEntry


def _first_entry(session, po_id):
    return session.execute(
        select(POStatusTimelineEntry)
        .where(POStatusTimelineEntry.po_id == po_id)
        .order_by(POStatusTimelineEntry.position)
    ).scalars().first()


def test_update_is_blocked(session_factory, store, create_draft, captured_logs):
    po = create_draft()

    with pytest.raises(ImmutabilityViolationError) as exc_info:
        with session_scope(session_factory) as session:
            _first_entry(session, po.id).notes = "rewritten"

    assert exc_info.value.entity_type == "POStatusTimelineEntry"
    assert store.find_by_id(po.id).timeline[0].notes == "PO created"
    blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
    assert blocked and blocked[0]["operation"] == "UPDATE"


def test_status_rewrite_is_blocked(session_factory, store, create_draft):
    po = create_draft()

    with pytest.raises(ImmutabilityViolationError):
        with session_scope(session_factory) as session:
            _first_entry(session, po.id).to_status = "APPROVED"

    assert store.find_by_id(po.id).timeline[0].to_status.value == "DRAFT"


def test_single_entry_delete_is_blocked(session_factory, store, create_draft):
    po = create_draft()

    with pytest.raises(ImmutabilityViolationError):
        with session_scope(session_factory) as session:
            session.delete(_first_entry(session, po.id))

    assert len(store.find_by_id(po.id).timeline) == 1


def test_entries_go_with_their_deleted_draft(session_factory, store, create_draft):
    po = create_draft()
    store.delete_draft(po.id)

    with session_scope(session_factory) as session:
        assert _first_entry(session, po.id) is None


def test_unchanged_entry_can_be_flushed(session_factory, create_draft):
    po = create_draft()

    with session_scope(session_factory) as session:
        entry = _first_entry(session, po.id)
        entry.notes = entry.notes
        session.flush()
