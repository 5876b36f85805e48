"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers, used for
    purchase order numbers.  Uses a dedicated counter table with row-level
    locking (``SELECT ... FOR UPDATE``) to guarantee uniqueness and ordering
    under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by StatusTransitionEngine.submit() inside its PO-locked transaction.

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  MAX(po_number)+1 is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is committed only when the caller's
        transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).next_value("po_number")
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        1. Locks the sequence row (or creates it if not exists)
        2. Increments the counter
        3. Returns the new value

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously committed value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # time; a savepoint keeps the caller's work intact if we lose.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: This should only be used in tests or data migrations.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        else:
            counter.current_value = value

        self._session.flush()
