"""
Purchase Order Lifecycle.

The fixed five-state machine a purchase order moves through:

    DRAFT ──submit──> SUBMITTED ──approve──> APPROVED ──fulfill──> FULFILLED
                          │
                          └──────reject────> REJECTED

REJECTED and FULFILLED are terminal.  Only DRAFT is editable or deletable.
The graph is data, not code: ``VALID_TRANSITIONS`` is the single source of
truth consulted by the Status Transition Engine.
"""

from dataclasses import dataclass
from enum import Enum


class POStatus(str, Enum):
    """Purchase order lifecycle states."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FULFILLED = "FULFILLED"


VALID_TRANSITIONS: dict[POStatus, frozenset[POStatus]] = {
    POStatus.DRAFT: frozenset({POStatus.SUBMITTED}),
    POStatus.SUBMITTED: frozenset({POStatus.APPROVED, POStatus.REJECTED}),
    POStatus.APPROVED: frozenset({POStatus.FULFILLED}),
    # Terminal states
    POStatus.REJECTED: frozenset(),
    POStatus.FULFILLED: frozenset(),
}

TERMINAL_STATES: frozenset[POStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


@dataclass(frozen=True)
class Transition:
    """A valid state transition with the defaults its action records."""
    from_state: POStatus
    to_state: POStatus
    action: str
    default_actor: str
    default_notes: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: POStatus
    states: tuple[POStatus, ...]
    transitions: tuple[Transition, ...]

    def transition_for(self, action: str) -> Transition:
        for transition in self.transitions:
            if transition.action == action:
                return transition
        raise KeyError(action)


PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Refinery equipment purchase order lifecycle",
    initial_state=POStatus.DRAFT,
    states=tuple(POStatus),
    transitions=(
        Transition(
            POStatus.DRAFT, POStatus.SUBMITTED, "submit",
            default_actor="Buyer", default_notes="PO submitted for approval",
        ),
        Transition(
            POStatus.SUBMITTED, POStatus.APPROVED, "approve",
            default_actor="Approver", default_notes="PO approved",
        ),
        Transition(
            POStatus.SUBMITTED, POStatus.REJECTED, "reject",
            default_actor="Approver", default_notes="PO rejected",
        ),
        Transition(
            POStatus.APPROVED, POStatus.FULFILLED, "fulfill",
            default_actor="Warehouse", default_notes="PO fulfilled",
        ),
    ),
)

CREATION_ACTOR = "System"
CREATION_NOTES = "PO created"


def parse_status(value: "str | POStatus") -> POStatus:
    """Coerce a status string to POStatus; raises ValueError if unknown."""
    if isinstance(value, POStatus):
        return value
    return POStatus(value)


def is_transition_allowed(from_status: POStatus, to_status: POStatus) -> bool:
    return to_status in VALID_TRANSITIONS[from_status]
