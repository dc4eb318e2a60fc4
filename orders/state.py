"""Order status transition table.

Pure functions over a frozen `OrderState`; nothing here touches the
database. The services apply a `Transition` to the model and persist the
history entry it carries.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from common.choices import OrderStatus

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPING}),
    OrderStatus.SHIPPING: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.FAILED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

CANCELLABLE = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if OrderStatus.CANCELLED in targets)


class TransitionError(ValueError):
    """Raised for a status change the table does not allow."""


@dataclass(frozen=True)
class OrderState:
    status: str
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: str = ""
    delivered_at: Optional[datetime] = None


@dataclass(frozen=True)
class HistoryEntry:
    status: str
    timestamp: datetime
    note: str = ""
    updated_by_id: Optional[int] = None


@dataclass(frozen=True)
class Transition:
    state: OrderState
    history: HistoryEntry


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(
    state: OrderState, target: str, *, at: datetime, note: str = "", actor_id: Optional[int] = None
) -> Transition:
    if not can_transition(state.status, target):
        raise TransitionError(f"Cannot change order status from {state.status} to {target}")
    changes = {"status": target}
    if target == OrderStatus.CANCELLED:
        changes.update(cancelled_at=at, cancel_reason=note)
    elif target == OrderStatus.COMPLETED:
        changes["delivered_at"] = at
    return Transition(
        state=replace(state, **changes),
        history=HistoryEntry(status=target, timestamp=at, note=note, updated_by_id=actor_id),
    )


def cancel(state: OrderState, *, at: datetime, reason: str, actor_id: Optional[int] = None) -> Transition:
    if state.status not in CANCELLABLE:
        raise TransitionError(f"Order cannot be cancelled while {state.status}")
    return transition(state, OrderStatus.CANCELLED, at=at, note=reason, actor_id=actor_id)


def confirm_payment(state: OrderState, *, at: datetime, note: str = "Payment confirmed") -> Transition:
    """Mark paid; only a PENDING order changes status."""

    paid = replace(state, is_paid=True, paid_at=at)
    if state.status == OrderStatus.PENDING:
        paid = replace(paid, status=OrderStatus.CONFIRMED)
    return Transition(state=paid, history=HistoryEntry(status=paid.status, timestamp=at, note=note))


def fail_payment(state: OrderState, *, at: datetime, reason: str) -> Optional[Transition]:
    """A failed payment moves a PENDING order to FAILED; otherwise nothing changes."""

    if state.status != OrderStatus.PENDING:
        return None
    return transition(state, OrderStatus.FAILED, at=at, note=reason)
