"""Tests for SequenceService -- locked, monotonic counters."""

from procurement_kernel.db.engine import session_scope
from procurement_kernel.services.sequence_service import SequenceService


def test_first_value_is_one(session_factory):
    with session_scope(session_factory) as session:
        assert SequenceService(session).next_value("po_number") == 1


def test_values_increase_across_transactions(session_factory):
    values = []
    for _ in range(3):
        with session_scope(session_factory) as session:
            values.append(SequenceService(session).next_value("po_number"))
    assert values == [1, 2, 3]


def test_sequences_are_independent(session_factory):
    with session_scope(session_factory) as session:
        service = SequenceService(session)
        service.next_value("a")
        service.next_value("a")
        assert service.next_value("b") == 1


def test_rolled_back_increment_is_not_kept(session_factory):
    with session_scope(session_factory) as session:
        SequenceService(session).next_value("po_number")

    session = session_factory()
    try:
        assert SequenceService(session).next_value("po_number") == 2
        session.rollback()
    finally:
        session.close()

    with session_scope(session_factory) as session:
        assert SequenceService(session).current_value("po_number") == 1


def test_current_value_of_unused_sequence(session_factory):
    with session_scope(session_factory) as session:
        assert SequenceService(session).current_value("never_used") is None


def test_reset(session_factory):
    with session_scope(session_factory) as session:
        service = SequenceService(session)
        service.next_value("po_number")
        service.reset("po_number", 41)
        assert service.next_value("po_number") == 42
