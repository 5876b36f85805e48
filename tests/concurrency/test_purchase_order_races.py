"""
Concurrent mutations of one purchase order.

Every read-check-write holds the PO row lock for its whole transaction, so
racing callers are serialized: exactly one wins each contested transition,
and nothing is added to a PO after it left DRAFT.

Each test releases its workers through a ``threading.Barrier`` so the calls
really overlap.  On SQLite the lock is the database write lock taken by
``BEGIN IMMEDIATE``; set DATABASE_URL to exercise PostgreSQL row locks.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from procurement_kernel.domain.lifecycle import POStatus
from procurement_kernel.exceptions import (
    InvalidTransitionError,
    PurchaseOrderNotDraftError,
    ProcurementError,
)

pytestmark = pytest.mark.slow_locks


def _race(*calls):
    """Run the calls on separate threads, released together.

    Returns one (result, error) pair per call, in call order.
    """
    barrier = Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call(), None
        except ProcurementError as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(run, call) for call in calls]
        return [future.result(timeout=60) for future in futures]


def test_concurrent_submits_allocate_one_number(store, status_engine, draft_with_lines):
    po = draft_with_lines("10.00")

    outcomes = _race(*[lambda: status_engine.submit(po.id) for _ in range(5)])

    winners = [result for result, error in outcomes if error is None]
    losers = [error for result, error in outcomes if error is not None]
    assert len(winners) == 1
    assert all(isinstance(error, InvalidTransitionError) for error in losers)

    final = store.find_by_id(po.id)
    assert final.status is POStatus.SUBMITTED
    assert final.po_number == winners[0].po_number == "PO-2025-00001"
    assert [e.to_status for e in final.timeline] == [POStatus.DRAFT, POStatus.SUBMITTED]


def test_submits_of_different_drafts_get_distinct_numbers(status_engine, draft_with_lines):
    drafts = [draft_with_lines("10.00") for _ in range(6)]

    outcomes = _race(*[(lambda po_id=po.id: status_engine.submit(po_id)) for po in drafts])

    numbers = [result.po_number for result, error in outcomes]
    assert all(error is None for _, error in outcomes)
    assert sorted(numbers) == [f"PO-2025-{n:05d}" for n in range(1, 7)]


def test_add_line_racing_submit_never_lands_after_submit(
    store, status_engine, draft_with_lines, make_snapshot,
):
    for _ in range(5):
        po = draft_with_lines("10.00")

        (submitted, submit_error), (line, add_error) = _race(
            lambda: status_engine.submit(po.id),
            lambda: store.add_line_item(po.id, "late-item", 1, make_snapshot(unit_price="5.00")),
        )

        assert submit_error is None
        final = store.find_by_id(po.id)
        assert final.line_items == submitted.line_items
        assert final.total_amount == submitted.total_amount
        if add_error is None:
            # The add won the lock and is part of the submitted PO.
            assert line.id in {item.id for item in submitted.line_items}
        else:
            assert isinstance(add_error, PurchaseOrderNotDraftError)
            assert len(final.line_items) == 1


def test_approve_and_reject_race_has_one_winner(store, status_engine, draft_with_lines):
    po = draft_with_lines("10.00")
    status_engine.submit(po.id)

    (approved, approve_error), (rejected, reject_error) = _race(
        lambda: status_engine.approve(po.id),
        lambda: status_engine.reject(po.id),
    )

    assert (approve_error is None) != (reject_error is None)
    loser = approve_error or reject_error
    assert isinstance(loser, InvalidTransitionError)

    final = store.find_by_id(po.id)
    expected = POStatus.APPROVED if approve_error is None else POStatus.REJECTED
    assert final.status is expected
    assert [e.to_status for e in final.timeline] == [
        POStatus.DRAFT, POStatus.SUBMITTED, expected,
    ]
    assert [e.position for e in final.timeline] == [1, 2, 3]


def test_concurrent_creates_with_same_key_yield_one_draft(store, session_factory):
    outcomes = _race(*[
        lambda: store.create_draft("ACME", "Acme Industrial Supply", idempotency_key="retry-1")
        for _ in range(5)
    ])

    ids = {result.id for result, error in outcomes}
    assert all(error is None for _, error in outcomes)
    assert len(ids) == 1
    assert store.list().pagination.total == 1
    assert len(store.find_by_id(ids.pop()).timeline) == 1


def test_line_edits_on_one_draft_keep_total_consistent(store, draft_with_lines, make_snapshot):
    po = draft_with_lines("10.00")

    _race(*[
        (lambda n=n: store.add_line_item(po.id, f"item-{n}", n, make_snapshot(unit_price="1.50")))
        for n in range(1, 9)
    ])

    final = store.find_by_id(po.id)
    assert final.line_count == 9
    assert sorted(line.line_number for line in final.line_items) == list(range(1, 10))
    assert final.total_amount == sum(line.line_total for line in final.line_items)
