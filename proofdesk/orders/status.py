"""Order lifecycle statuses and the predicates every flow shares."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Union


class OrderStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    PROOF_SENT = "proof_sent"
    APPROVED = "approved"
    APPROVED_WITH_NOTES = "approved_with_notes"
    CHANGES_REQUESTED = "changes_requested"


DECIDED_STATUSES: FrozenSet[str] = frozenset(
    {
        OrderStatus.APPROVED.value,
        OrderStatus.APPROVED_WITH_NOTES.value,
        OrderStatus.CHANGES_REQUESTED.value,
    }
)

# Statuses the order sync never overwrites.
TERMINAL_STATUSES: FrozenSet[str] = DECIDED_STATUSES | {OrderStatus.PROOF_SENT.value}

DECISION_VALUES = tuple(sorted(DECIDED_STATUSES))


def _value(status: Union[str, OrderStatus]) -> str:
    if isinstance(status, OrderStatus):
        return status.value
    return str(status or "").strip().lower()


def is_decided(status: Union[str, OrderStatus]) -> bool:
    """True once the customer has approved or requested changes."""

    return _value(status) in DECIDED_STATUSES


def is_terminal(status: Union[str, OrderStatus]) -> bool:
    return _value(status) in TERMINAL_STATUSES
