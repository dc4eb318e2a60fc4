import logging
from decimal import Decimal

import pytest
from cart.tests.factories import CartFactory, CartItemFactory
from catalog.tests.factories import ProductFactory
from notifications import dispatch
from notifications.models import Notification
from notifications.services import create_new_order_notification_for_admins
from orders.models import Order
from orders.services import create_order, handle_vnpay_return, record_payment_result, update_order_status
from orders.tests.factories import OrderFactory, PaymentFactory, shipping_address
from orders.vnpay import sign
from users.tests.factories import AdminUserFactory, UserFactory

INBOX_URL = "/api/v1/notifications/"


def _checkout(user):
    CartItemFactory(cart=CartFactory(user=user), product=ProductFactory(price=Decimal("125000.00")), quantity=2)
    return create_order(user=user, shipping_address=shipping_address(), payment_method=Order.METHOD_COD).order


@pytest.mark.django_db
def test_checkout_notifies_buyer_and_admins_after_commit(django_capture_on_commit_callbacks, mailoutbox):
    admin = AdminUserFactory()
    AdminUserFactory(is_active=False)
    user = UserFactory(first_name="Lan", last_name="Tran")

    with django_capture_on_commit_callbacks(execute=True):
        order = _checkout(user)

    buyer = Notification.objects.get(user=user)
    assert buyer.type == Notification.TYPE_ORDER_UPDATE
    assert buyer.message == f"Order #{order.number} was created"
    assert buyer.action_url == f"/orders/{order.id}"

    staff = Notification.objects.get(user=admin)
    assert staff.type == Notification.TYPE_NEW_ORDER
    assert staff.priority == Notification.PRIORITY_HIGH
    assert staff.title == f"New order #{order.number} needs confirmation"
    assert "Lan Tran" in staff.message and "270.000₫" in staff.message
    assert Notification.objects.count() == 2

    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == [user.email]
    assert f"http://shop.test/orders/{order.id}" in mailoutbox[0].body


@pytest.mark.django_db
def test_nothing_is_sent_before_commit(django_capture_on_commit_callbacks, mailoutbox):
    with django_capture_on_commit_callbacks() as callbacks:
        _checkout(UserFactory())

    assert callbacks
    assert Notification.objects.count() == 0
    assert mailoutbox == []


@pytest.mark.django_db
def test_notification_failure_does_not_break_checkout(django_capture_on_commit_callbacks, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr("notifications.services.send_order_email", boom)
    user = UserFactory()

    with caplog.at_level(logging.ERROR, logger="aquashop.notifications"):
        with django_capture_on_commit_callbacks(execute=True):
            order = _checkout(user)

    assert Order.objects.filter(id=order.id).exists()
    assert any(r.getMessage() == "notification.order_created.failed" for r in caplog.records)


@pytest.mark.django_db
def test_cancellation_notification_is_high_priority(django_capture_on_commit_callbacks):
    order = OrderFactory(status=Order.STATUS_CONFIRMED)

    with django_capture_on_commit_callbacks(execute=True):
        update_order_status(order_id=order.id, status=Order.STATUS_CANCELLED, actor=AdminUserFactory(), note="No stock")

    notification = Notification.objects.get(user=order.user)
    assert notification.priority == Notification.PRIORITY_HIGH
    assert notification.title == "Your order has been cancelled"
    assert "No stock" in notification.message


@pytest.mark.django_db
def test_shipping_update_notifies_buyer(django_capture_on_commit_callbacks, mailoutbox):
    order = OrderFactory(status=Order.STATUS_PROCESSING)

    with django_capture_on_commit_callbacks(execute=True):
        update_order_status(order_id=order.id, status=Order.STATUS_SHIPPING, actor=AdminUserFactory())

    notification = Notification.objects.get(user=order.user)
    assert notification.title == "Your order is on its way"
    assert notification.priority == Notification.PRIORITY_MEDIUM
    assert mailoutbox[0].subject == "Your order is on its way"


@pytest.mark.django_db
def test_payment_failure_notification(django_capture_on_commit_callbacks):
    order = OrderFactory()
    PaymentFactory(order=order)

    with django_capture_on_commit_callbacks(execute=True):
        record_payment_result(order_id=order.id, actor=AdminUserFactory(), succeeded=False, reason="Refused")

    notification = Notification.objects.get(user=order.user)
    assert notification.type == Notification.TYPE_PAYMENT_FAILED
    assert notification.message.endswith("Refused")


@pytest.mark.django_db
def test_staged_gateway_order_notifies_only_once_paid(django_capture_on_commit_callbacks, mailoutbox):
    admins = AdminUserFactory.create_batch(2)
    user = UserFactory()
    CartItemFactory(cart=CartFactory(user=user), product=ProductFactory(price=Decimal("125000.00")), quantity=2)

    with django_capture_on_commit_callbacks(execute=True) as staged_callbacks:
        result = create_order(user=user, shipping_address=shipping_address(), payment_method=Order.METHOD_VNPAY)

    assert staged_callbacks == []
    assert Notification.objects.count() == 0
    assert mailoutbox == []

    params = {
        "vnp_Amount": "27000000",
        "vnp_ResponseCode": "00",
        "vnp_TransactionStatus": "00",
        "vnp_TransactionNo": "14000003",
        "vnp_TxnRef": result.transaction_ref,
    }
    params["vnp_SecureHash"] = sign(params)
    with django_capture_on_commit_callbacks(execute=True):
        outcome = handle_vnpay_return(params)

    assert outcome.status == "success"
    buyer = Notification.objects.get(user=user)
    assert buyer.message == f"Order #{outcome.order.number} was created"
    for admin in admins:
        staff = Notification.objects.get(user=admin)
        assert staff.type == Notification.TYPE_NEW_ORDER
    assert Notification.objects.count() == 1 + len(admins)
    assert [m.to for m in mailoutbox] == [[user.email]]


@pytest.mark.django_db
def test_admin_fan_out_without_admins_creates_nothing():
    order = OrderFactory()
    assert create_new_order_notification_for_admins(order.id, order.number, "A", order.total_price) == []


@pytest.mark.django_db
def test_async_mode_submits_to_the_pool(django_capture_on_commit_callbacks, settings, monkeypatch):
    submitted = []

    class FakeExecutor:
        def submit(self, fn, *args):
            submitted.append((fn, args))

    settings.NOTIFICATIONS_ASYNC = True
    monkeypatch.setattr(dispatch, "_get_executor", lambda: FakeExecutor())

    with django_capture_on_commit_callbacks(execute=True):
        dispatch.after_commit(print, "hi", event="test.event")

    assert len(submitted) == 1
    fn, args = submitted[0]
    assert fn is dispatch._run
    assert args[0] is print and args[-1] is True


# ---------------------------------------------------------------------------
# Inbox API
# ---------------------------------------------------------------------------


def _notification(user, **kwargs):
    defaults = {"type": Notification.TYPE_ORDER_UPDATE, "title": "Order update", "message": "Updated"}
    defaults.update(kwargs)
    return Notification.objects.create(user=user, **defaults)


@pytest.mark.django_db
def test_inbox_lists_own_notifications(api_client):
    user = UserFactory()
    _notification(user)
    _notification(user, is_read=True)
    _notification(UserFactory())
    api_client.force_authenticate(user)

    assert api_client.get(INBOX_URL).json()["count"] == 2
    assert api_client.get(INBOX_URL, {"unread": "true"}).json()["count"] == 1


@pytest.mark.django_db
def test_mark_read(api_client):
    user = UserFactory()
    notification = _notification(user)
    api_client.force_authenticate(user)

    resp = api_client.post(f"{INBOX_URL}{notification.id}/read/")

    assert resp.status_code == 200
    assert resp.json()["is_read"] is True
    notification.refresh_from_db()
    assert notification.read_at is not None


@pytest.mark.django_db
def test_mark_read_on_someone_elses_notification_is_404(api_client):
    notification = _notification(UserFactory())
    api_client.force_authenticate(UserFactory())
    assert api_client.post(f"{INBOX_URL}{notification.id}/read/").status_code == 404
