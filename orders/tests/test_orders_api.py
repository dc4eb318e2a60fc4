from datetime import timedelta
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest
from cart.tests.factories import CartFactory, CartItemFactory
from catalog.tests.factories import ProductFactory
from django.core.management import call_command
from django.utils import timezone
from orders.models import IdempotencyKey, Order, Payment
from orders.vnpay import sign
from users.tests.factories import AdminUserFactory, UserFactory

from .factories import OrderFactory, OrderItemFactory, PaymentFactory, shipping_address

ORDERS_URL = "/api/v1/orders/"
ADMIN_URL = "/api/v1/admin/orders/"


def _fill_cart(user, price="125000.00", quantity=2, stock=10):
    product = ProductFactory(price=Decimal(price), stock=stock)
    CartItemFactory(cart=CartFactory(user=user), product=product, quantity=quantity)
    return product


def _checkout_payload(**overrides):
    payload = {"shipping_address": shipping_address(), "payment_method": "cod"}
    payload.update(overrides)
    return payload


@pytest.mark.django_db
def test_requires_authentication(api_client):
    assert api_client.get(ORDERS_URL).status_code == 401
    assert api_client.post(ORDERS_URL, _checkout_payload(), format="json").status_code == 401


@pytest.mark.django_db
def test_cod_checkout_returns_the_order(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(ORDERS_URL, _checkout_payload(notes="Leave at the door"), format="json")

    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["status"] == "pending"
    assert body["total_price"] == "270000.00"
    assert body["shipping_fee"] == "20000.00"
    assert body["notes"] == "Leave at the door"
    assert body["payment"]["status"] == "processing"
    assert len(body["items"]) == 1
    assert body["history"][0]["status"] == "pending"


@pytest.mark.django_db
def test_checkout_with_incomplete_address_is_400(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(
        ORDERS_URL, _checkout_payload(shipping_address={"full_name": "A", "phone": "0901"}), format="json"
    )

    assert resp.status_code == 400
    assert "street" in resp.json()["detail"]


@pytest.mark.django_db
def test_unknown_payment_method_is_rejected_by_the_serializer(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(ORDERS_URL, _checkout_payload(payment_method="stripe"), format="json")

    assert resp.status_code == 400
    assert "payment_method" in resp.json()


@pytest.mark.django_db
def test_vnpay_checkout_returns_payment_url(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(
        ORDERS_URL, _checkout_payload(payment_method="vnpay"), format="json", REMOTE_ADDR="10.1.2.3"
    )

    assert resp.status_code == 201
    body = resp.json()
    query = parse_qs(urlparse(body["payment_url"]).query)
    assert query["vnp_TxnRef"] == [body["transaction_ref"]]
    assert query["vnp_Amount"] == ["27000000"]
    assert query["vnp_IpAddr"] == ["10.1.2.3"]
    assert body["total_price"] == "270000.00"
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_malformed_forwarded_for_falls_back_to_remote_addr(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(
        ORDERS_URL, _checkout_payload(), format="json", HTTP_X_FORWARDED_FOR="unknown", REMOTE_ADDR="10.1.2.3"
    )

    assert resp.status_code == 201
    payment = Payment.objects.get(order_id=resp.json()["id"])
    assert payment.ip_address == "10.1.2.3"
    payment.full_clean()


@pytest.mark.django_db
def test_valid_forwarded_for_is_sent_to_the_gateway(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)

    resp = api_client.post(
        ORDERS_URL,
        _checkout_payload(payment_method="vnpay"),
        format="json",
        HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1",
        REMOTE_ADDR="10.1.2.3",
    )

    query = parse_qs(urlparse(resp.json()["payment_url"]).query)
    assert query["vnp_IpAddr"] == ["203.0.113.7"]


@pytest.mark.django_db
def test_vnpay_return_redirects_to_the_new_order(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)
    ref = api_client.post(ORDERS_URL, _checkout_payload(payment_method="vnpay"), format="json").json()[
        "transaction_ref"
    ]
    api_client.force_authenticate(None)

    params = {
        "vnp_Amount": "27000000",
        "vnp_ResponseCode": "00",
        "vnp_TransactionStatus": "00",
        "vnp_TransactionNo": "14000002",
        "vnp_TxnRef": ref,
    }
    params["vnp_SecureHash"] = sign(params)

    resp = api_client.get(f"{ORDERS_URL}payment/vnpay/return/", params)
    order = Order.objects.get()
    assert resp.status_code == 302
    assert resp["Location"] == f"http://shop.test/orders/{order.id}?payment=success"

    again = api_client.get(f"{ORDERS_URL}payment/vnpay/return/", params)
    assert again["Location"] == resp["Location"]
    assert Order.objects.count() == 1


@pytest.mark.django_db
def test_vnpay_return_with_bad_signature_redirects_to_failure(api_client):
    resp = api_client.get(
        f"{ORDERS_URL}payment/vnpay/return/",
        {"vnp_TxnRef": "X1", "vnp_ResponseCode": "00", "vnp_SecureHash": "abc"},
    )
    assert resp.status_code == 302
    location = urlparse(resp["Location"])
    assert location.path == "/checkout/result"
    assert parse_qs(location.query) == {"payment": ["failed"], "reason": ["invalid_signature"]}


@pytest.mark.django_db
def test_list_only_shows_own_orders(api_client):
    user = UserFactory()
    OrderFactory.create_batch(2, user=user)
    OrderFactory(user=user, status=Order.STATUS_SHIPPING)
    OrderFactory()
    api_client.force_authenticate(user)

    resp = api_client.get(ORDERS_URL)
    assert resp.status_code == 200
    assert resp.json()["count"] == 3

    shipping = api_client.get(ORDERS_URL, {"status": "shipping"}).json()
    assert shipping["count"] == 1


@pytest.mark.django_db
def test_detail_is_hidden_from_other_customers(api_client):
    order = OrderFactory()
    api_client.force_authenticate(UserFactory())
    resp = api_client.get(f"{ORDERS_URL}{order.id}/")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not found."}


@pytest.mark.django_db
def test_detail_for_owner_and_admin(api_client):
    order = OrderFactory()
    api_client.force_authenticate(order.user)
    assert api_client.get(f"{ORDERS_URL}{order.id}/").json()["number"] == order.number

    api_client.force_authenticate(AdminUserFactory())
    assert api_client.get(f"{ORDERS_URL}{order.id}/").status_code == 200


@pytest.mark.django_db
def test_cancel_restores_stock_and_payment(api_client, django_capture_on_commit_callbacks):
    user = UserFactory()
    product = _fill_cart(user, quantity=3)
    api_client.force_authenticate(user)
    order_id = api_client.post(ORDERS_URL, _checkout_payload(), format="json").json()["id"]
    product.refresh_from_db()
    assert product.stock == 7

    # warm the detail cache so the cancellation must invalidate it
    api_client.get(f"{ORDERS_URL}{order_id}/")
    with django_capture_on_commit_callbacks(execute=True):
        resp = api_client.post(f"{ORDERS_URL}{order_id}/cancel/", {"reason": "Changed my mind"}, format="json")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "cancelled"
    assert body["cancel_reason"] == "Changed my mind"
    product.refresh_from_db()
    assert (product.stock, product.sold_count) == (10, 0)
    assert Payment.objects.get(order_id=order_id).status == Payment.STATUS_CANCELLED
    assert api_client.get(f"{ORDERS_URL}{order_id}/").json()["status"] == "cancelled"


@pytest.mark.django_db
@pytest.mark.parametrize(
    "status,expected",
    [
        (Order.STATUS_PENDING, 200),
        (Order.STATUS_CONFIRMED, 200),
        (Order.STATUS_FAILED, 200),
        (Order.STATUS_PROCESSING, 400),
        (Order.STATUS_SHIPPING, 400),
        (Order.STATUS_COMPLETED, 400),
        (Order.STATUS_CANCELLED, 400),
        (Order.STATUS_REFUNDED, 400),
    ],
)
def test_cancel_respects_status(api_client, status, expected):
    order = OrderFactory(status=status)
    api_client.force_authenticate(order.user)
    resp = api_client.post(f"{ORDERS_URL}{order.id}/cancel/", {}, format="json")
    assert resp.status_code == expected


@pytest.mark.django_db
def test_cancel_someone_elses_order_is_forbidden(api_client):
    order = OrderFactory()
    api_client.force_authenticate(UserFactory())
    resp = api_client.post(f"{ORDERS_URL}{order.id}/cancel/", {}, format="json")
    assert resp.status_code == 403
    order.refresh_from_db()
    assert order.status == Order.STATUS_PENDING


@pytest.mark.django_db
def test_cancel_missing_order_is_404(api_client):
    api_client.force_authenticate(UserFactory())
    assert api_client.post(f"{ORDERS_URL}999999/cancel/", {}, format="json").status_code == 404


@pytest.mark.django_db
def test_cancel_skips_deleted_products(api_client):
    order = OrderFactory()
    kept = OrderItemFactory(order=order, quantity=2)
    gone = OrderItemFactory(order=order)
    gone.product.delete()
    kept.product.stock = 5
    kept.product.save()
    api_client.force_authenticate(order.user)

    resp = api_client.post(f"{ORDERS_URL}{order.id}/cancel/", {}, format="json")

    assert resp.status_code == 200
    kept.product.refresh_from_db()
    assert kept.product.stock == 7


@pytest.mark.django_db
def test_create_with_idempotency_key_replays(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)
    payload = _checkout_payload()

    first = api_client.post(ORDERS_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="checkout-1")
    second = api_client.post(ORDERS_URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="checkout-1")

    assert first.status_code == second.status_code == 201
    assert first.json()["id"] == second.json()["id"]
    assert Order.objects.count() == 1


@pytest.mark.django_db
def test_idempotency_key_reuse_with_other_payload_conflicts(api_client):
    user = UserFactory()
    _fill_cart(user)
    api_client.force_authenticate(user)
    api_client.post(ORDERS_URL, _checkout_payload(), format="json", HTTP_IDEMPOTENCY_KEY="k1")

    resp = api_client.post(ORDERS_URL, _checkout_payload(notes="other"), format="json", HTTP_IDEMPOTENCY_KEY="k1")

    assert resp.status_code == 409
    assert IdempotencyKey.objects.count() == 1


@pytest.mark.django_db
def test_preview_endpoint(api_client):
    user = UserFactory()
    _fill_cart(user, price="50000.00", quantity=1)
    api_client.force_authenticate(user)

    body = api_client.get(f"{ORDERS_URL}preview/").json()

    assert Decimal(str(body["subtotal"])) == Decimal("50000")
    assert Decimal(str(body["shipping_fee"])) == Decimal("7000")
    assert Decimal(str(body["total_price"])) == Decimal("57000")
    assert body["promotion"] is None


@pytest.mark.django_db
def test_preview_with_empty_cart_is_400(api_client):
    api_client.force_authenticate(UserFactory())
    assert api_client.get(f"{ORDERS_URL}preview/").status_code == 400


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.mark.django_db
def test_admin_endpoints_require_admin_role(api_client):
    order = OrderFactory()
    api_client.force_authenticate(order.user)
    assert api_client.get(ADMIN_URL).status_code == 403
    assert api_client.patch(f"{ADMIN_URL}{order.id}/status/", {"status": "confirmed"}, format="json").status_code == 403


@pytest.mark.django_db
def test_admin_list_filters_and_search(api_client):
    OrderFactory(status=Order.STATUS_CONFIRMED, shipping_address=shipping_address(phone="0911000111"))
    OrderFactory.create_batch(2)
    api_client.force_authenticate(AdminUserFactory())

    assert api_client.get(ADMIN_URL).json()["count"] == 3
    assert api_client.get(ADMIN_URL, {"status": "confirmed"}).json()["count"] == 1
    assert api_client.get(ADMIN_URL, {"search": "0911000"}).json()["count"] == 1


@pytest.mark.django_db
def test_admin_walks_order_to_completion(api_client):
    admin = AdminUserFactory()
    order = OrderFactory()
    payment = PaymentFactory(order=order)
    api_client.force_authenticate(admin)
    url = f"{ADMIN_URL}{order.id}/status/"

    for target in ("confirmed", "processing"):
        assert api_client.patch(url, {"status": target}, format="json").status_code == 200
    resp = api_client.patch(
        url, {"status": "shipping", "tracking_number": "GHN123", "shipping_provider": "GHN"}, format="json"
    )
    assert resp.json()["tracking_number"] == "GHN123"
    body = api_client.patch(url, {"status": "completed"}, format="json").json()

    assert body["status"] == "completed"
    assert body["is_paid"] is True
    assert body["delivered_at"] is not None
    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_COMPLETED
    statuses = [row["status"] for row in body["history"]]
    assert statuses[:5] == ["pending", "confirmed", "processing", "shipping", "completed"]


@pytest.mark.django_db
def test_admin_cannot_skip_states(api_client):
    order = OrderFactory()
    api_client.force_authenticate(AdminUserFactory())
    resp = api_client.patch(f"{ADMIN_URL}{order.id}/status/", {"status": "completed"}, format="json")
    assert resp.status_code == 400
    order.refresh_from_db()
    assert order.status == Order.STATUS_PENDING


@pytest.mark.django_db
def test_admin_cancel_returns_stock(api_client):
    order = OrderFactory(status=Order.STATUS_CONFIRMED)
    item = OrderItemFactory(order=order, quantity=4)
    api_client.force_authenticate(AdminUserFactory())

    resp = api_client.patch(
        f"{ADMIN_URL}{order.id}/status/", {"status": "cancelled", "note": "Out of stock at supplier"}, format="json"
    )

    assert resp.status_code == 200
    assert resp.json()["cancel_reason"] == "Out of stock at supplier"
    item.product.refresh_from_db()
    assert item.product.stock == 14


@pytest.mark.django_db
def test_admin_records_failed_payment(api_client):
    order = OrderFactory()
    PaymentFactory(order=order)
    api_client.force_authenticate(AdminUserFactory())

    resp = api_client.post(
        f"{ADMIN_URL}{order.id}/payment/", {"succeeded": False, "reason": "Customer refused"}, format="json"
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "failed"
    assert resp.json()["failure_reason"] == "Customer refused"
    order.refresh_from_db()
    assert order.status == Order.STATUS_FAILED
    assert order.history.last().status == Order.STATUS_FAILED


@pytest.mark.django_db
def test_admin_records_successful_payment(api_client):
    order = OrderFactory()
    PaymentFactory(order=order)
    api_client.force_authenticate(AdminUserFactory())

    resp = api_client.post(f"{ADMIN_URL}{order.id}/payment/", {"succeeded": True}, format="json")

    assert resp.status_code == 200
    order.refresh_from_db()
    assert order.is_paid
    assert order.status == Order.STATUS_CONFIRMED

    again = api_client.post(f"{ADMIN_URL}{order.id}/payment/", {"succeeded": True}, format="json")
    assert again.status_code == 400


@pytest.mark.django_db
def test_admin_statistics(api_client):
    OrderFactory(total_price=Decimal("100000.00"), is_paid=True, status=Order.STATUS_COMPLETED)
    OrderFactory(total_price=Decimal("50000.00"))
    OrderFactory(total_price=Decimal("30000.00"), status=Order.STATUS_CANCELLED)
    api_client.force_authenticate(AdminUserFactory())

    body = api_client.get(f"{ADMIN_URL}statistics/").json()

    assert body["total_orders"] == 3
    assert Decimal(str(body["total_revenue"])) == Decimal("180000.00")
    assert Decimal(str(body["paid_revenue"])) == Decimal("100000.00")
    assert body["by_status"]["cancelled"]["count"] == 1


@pytest.mark.django_db
def test_admin_staged_stats(api_client):
    api_client.force_authenticate(AdminUserFactory())
    body = api_client.get(f"{ADMIN_URL}staged/").json()
    assert body["backend"] == "memory"
    assert body["total"] == 0


@pytest.mark.django_db
def test_cleanup_idempotency_command():
    user = UserFactory()
    now = timezone.now()
    common = {"user": user, "scope": f"user:{user.id}", "path": ORDERS_URL, "method": "POST"}
    IdempotencyKey.objects.create(key="old", expires_at=now - timedelta(hours=1), response_code=201, **common)
    IdempotencyKey.objects.create(key="live", expires_at=now + timedelta(hours=1), response_code=201, **common)

    call_command("cleanup_idempotency", "--dry-run")
    assert IdempotencyKey.objects.count() == 2

    call_command("cleanup_idempotency")
    assert list(IdempotencyKey.objects.values_list("key", flat=True)) == ["live"]
