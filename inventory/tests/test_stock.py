import pytest
from catalog.models import Product
from catalog.tests.factories import ProductFactory, ProductVariantFactory
from inventory.models import StockMovement
from inventory.services import StockError, StockLine, commit_stock, rollback_line, rollback_stock, validate_line
from users.tests.factories import AdminUserFactory, UserFactory


@pytest.mark.django_db
def test_validate_line_checks_status_and_quantity():
    product = ProductFactory(stock=3, name="CO2 kit")
    assert validate_line(product=product, variant_id=None, quantity=3) is None

    with pytest.raises(StockError, match="only has 3 left"):
        validate_line(product=product, variant_id=None, quantity=4)
    with pytest.raises(StockError, match="positive"):
        validate_line(product=product, variant_id=None, quantity=0)

    product.status = Product.STATUS_OUT_OF_STOCK
    with pytest.raises(StockError, match="not available"):
        validate_line(product=product, variant_id=None, quantity=1)


@pytest.mark.django_db
def test_validate_line_for_variants():
    variant = ProductVariantFactory(stock=2)
    product = variant.product

    assert validate_line(product=product, variant_id=variant.id, quantity=2) == variant
    with pytest.raises(StockError, match="Variant .* not found"):
        validate_line(product=product, variant_id=None, quantity=1)

    variant.is_active = False
    variant.save()
    with pytest.raises(StockError, match="inactive"):
        validate_line(product=product, variant_id=variant.id, quantity=1)


@pytest.mark.django_db
def test_commit_then_rollback_restores_stock():
    product = ProductFactory(stock=10)
    lines = [StockLine(product_id=product.id, quantity=4)]

    commit_stock(lines, reference="ORD25010100001")
    product.refresh_from_db()
    assert (product.stock, product.sold_count) == (6, 4)

    assert rollback_stock(lines, reference="ORD25010100001") == 1
    product.refresh_from_db()
    assert (product.stock, product.sold_count) == (10, 0)

    movements = list(StockMovement.objects.filter(reference="ORD25010100001").order_by("id"))
    assert [(m.movement_type, m.quantity) for m in movements] == [
        (StockMovement.TYPE_OUTBOUND, -4),
        (StockMovement.TYPE_INBOUND, 4),
    ]


@pytest.mark.django_db
def test_commit_conflict_raises_and_leaves_stock():
    product = ProductFactory(stock=1)
    with pytest.raises(StockError):
        commit_stock([StockLine(product_id=product.id, quantity=2)])
    product.refresh_from_db()
    assert product.stock == 1
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_variant_commit_moves_variant_stock_and_product_sold_count():
    variant = ProductVariantFactory(stock=5)
    commit_stock([StockLine(product_id=variant.product_id, quantity=2, variant_id=variant.id)])

    variant.refresh_from_db()
    variant.product.refresh_from_db()
    assert variant.stock == 3
    assert variant.product.sold_count == 2
    assert variant.product.stock == 10


@pytest.mark.django_db
def test_rollback_floors_sold_count_at_zero():
    product = ProductFactory(stock=0, sold_count=1)
    rollback_stock([StockLine(product_id=product.id, quantity=3)])
    product.refresh_from_db()
    assert (product.stock, product.sold_count) == (3, 0)


@pytest.mark.django_db
def test_rollback_skips_deleted_product():
    product = ProductFactory()
    line = StockLine(product_id=product.id, quantity=1)
    product.delete()
    assert rollback_line(line=line) is False
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_movements_endpoint_is_admin_only(api_client):
    product = ProductFactory()
    commit_stock([StockLine(product_id=product.id, quantity=1)], reference="ORD1")
    commit_stock([StockLine(product_id=ProductFactory().id, quantity=1)], reference="ORD2")

    api_client.force_authenticate(UserFactory())
    assert api_client.get("/api/v1/admin/inventory/movements/").status_code == 403

    api_client.force_authenticate(AdminUserFactory())
    body = api_client.get("/api/v1/admin/inventory/movements/", {"reference": "ORD1"}).json()
    assert body["count"] == 1
    assert body["results"][0]["product"] == product.id
