import pytest
from common.choices import OrderStatus
from django.utils import timezone
from orders import state


@pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.FAILED])
def test_cancel_allowed(status):
    now = timezone.now()
    change = state.cancel(state.OrderState(status=status), at=now, reason="changed my mind", actor_id=7)
    assert change.state.status == OrderStatus.CANCELLED
    assert change.state.cancelled_at == now
    assert change.state.cancel_reason == "changed my mind"
    assert change.history.status == OrderStatus.CANCELLED
    assert change.history.updated_by_id == 7


@pytest.mark.parametrize(
    "status",
    [OrderStatus.PROCESSING, OrderStatus.SHIPPING, OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED],
)
def test_cancel_rejected(status):
    with pytest.raises(state.TransitionError):
        state.cancel(state.OrderState(status=status), at=timezone.now(), reason="x")


def test_forward_path_to_completed_sets_delivered_at():
    now = timezone.now()
    current = state.OrderState(status=OrderStatus.PENDING)
    for target in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPING, OrderStatus.COMPLETED):
        current = state.transition(current, target, at=now).state
    assert current.status == OrderStatus.COMPLETED
    assert current.delivered_at == now
    assert state.can_transition(OrderStatus.COMPLETED, OrderStatus.REFUNDED)


def test_skipping_a_step_is_rejected():
    with pytest.raises(state.TransitionError):
        state.transition(state.OrderState(status=OrderStatus.PENDING), OrderStatus.SHIPPING, at=timezone.now())


def test_confirm_payment_moves_pending_to_confirmed():
    now = timezone.now()
    change = state.confirm_payment(state.OrderState(status=OrderStatus.PENDING), at=now)
    assert change.state.status == OrderStatus.CONFIRMED
    assert change.state.is_paid is True
    assert change.state.paid_at == now


def test_confirm_payment_keeps_later_status():
    change = state.confirm_payment(state.OrderState(status=OrderStatus.SHIPPING), at=timezone.now())
    assert change.state.status == OrderStatus.SHIPPING
    assert change.state.is_paid is True


def test_failed_payment_only_fails_pending_orders():
    now = timezone.now()
    failed = state.fail_payment(state.OrderState(status=OrderStatus.PENDING), at=now, reason="declined")
    assert failed.state.status == OrderStatus.FAILED
    assert failed.history.note == "declined"
    assert state.fail_payment(state.OrderState(status=OrderStatus.CONFIRMED), at=now, reason="declined") is None
