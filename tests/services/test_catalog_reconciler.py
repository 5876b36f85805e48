"""
Tests for CatalogChangeReconciler -- catalog events against draft lines.

Covers the discontinued-item scenario: only DRAFT lines are annotated, no
line is deleted, no status or total changes, and redelivery is harmless.
"""

from decimal import Decimal

import pytest

from procurement_kernel.domain.lifecycle import POStatus
from procurement_services.reconciler import (
    DISCONTINUED_NOTE,
    ITEM_DISCONTINUED,
    ITEM_UPDATED,
    CatalogChangeReconciler,
    EventOutcome,
)


@pytest.fixture
def reconciler(store) -> CatalogChangeReconciler:
    return CatalogChangeReconciler(store)


def test_discontinued_item_annotates_draft_lines_only(
    reconciler, store, status_engine, create_draft, make_snapshot,
):
    draft = create_draft()
    store.add_line_item(draft.id, "VLV-100", 2, make_snapshot(unit_price="100.00"))
    store.add_line_item(draft.id, "PT-3051", 1, make_snapshot(unit_price="2500.00"))
    submitted = create_draft()
    store.add_line_item(submitted.id, "VLV-100", 1, make_snapshot(unit_price="100.00"))
    status_engine.submit(submitted.id)

    result = reconciler.handle(ITEM_DISCONTINUED, {"itemId": "VLV-100"})

    assert result.outcome is EventOutcome.ANNOTATED
    assert result.lines_annotated == 1

    after = store.find_by_id(draft.id)
    assert after.status is POStatus.DRAFT
    assert after.total_amount == Decimal("2700.00")
    notes = {line.catalog_item_id: line.notes for line in after.line_items}
    assert notes == {"VLV-100": DISCONTINUED_NOTE, "PT-3051": None}

    frozen = store.find_by_id(submitted.id)
    assert frozen.status is POStatus.SUBMITTED
    assert [line.notes for line in frozen.line_items] == [None]


def test_redelivery_is_idempotent(reconciler, store, draft_with_lines):
    po = draft_with_lines("10.00")
    item_id = po.line_items[0].catalog_item_id

    reconciler.handle(ITEM_DISCONTINUED, {"itemId": item_id})
    reconciler.handle(ITEM_DISCONTINUED, {"itemId": item_id})

    lines = store.list_lines(po.id)
    assert [line.notes for line in lines] == [DISCONTINUED_NOTE]


def test_item_updated_changes_nothing(reconciler, store, draft_with_lines, captured_logs):
    po = draft_with_lines("10.00")
    before = store.find_by_id(po.id)

    result = reconciler.handle(ITEM_UPDATED, {"itemId": po.line_items[0].catalog_item_id})

    assert result.outcome is EventOutcome.IGNORED
    assert store.find_by_id(po.id) == before
    processed = [r for r in captured_logs() if r["message"] == "catalog_event_processed"]
    assert processed[0]["routing_key"] == ITEM_UPDATED


@pytest.mark.parametrize("payload", [{}, {"itemId": ""}, {"itemId": None}, ["VLV-100"], "VLV-100"])
def test_event_without_item_id_is_dropped(reconciler, session_factory, payload, captured_logs):
    result = reconciler.handle(ITEM_DISCONTINUED, payload)
    assert result.outcome is EventOutcome.DROPPED
    assert any(r["message"] == "catalog_event_missing_item_id" for r in captured_logs())


def test_unknown_routing_key_is_dropped(reconciler, store, draft_with_lines):
    po = draft_with_lines("10.00")
    result = reconciler.handle("catalog.item.created", {"itemId": po.line_items[0].catalog_item_id})

    assert result.outcome is EventOutcome.DROPPED
    assert store.list_lines(po.id)[0].notes is None


def test_numeric_item_id_is_accepted(reconciler, store, create_draft, make_snapshot):
    po = create_draft()
    store.add_line_item(po.id, "42", 1, make_snapshot())

    result = reconciler.handle(ITEM_DISCONTINUED, {"itemId": 42})

    assert result.lines_annotated == 1
