import pytest
from catalog.models import Product
from inventory.services import StockLine, commit_stock
from rest_framework.throttling import SimpleRateThrottle

from .factories import CategoryFactory, ProductFactory, ProductVariantFactory

PRODUCTS_URL = "/api/v1/catalog/products/"


@pytest.mark.django_db
def test_list_shows_active_products_only(api_client):
    ProductFactory(name="Aqua Soil")
    ProductFactory(name="Old Heater", status=Product.STATUS_INACTIVE)

    resp = api_client.get(PRODUCTS_URL)

    assert resp.status_code == 200
    assert [p["name"] for p in resp.json()["results"]] == ["Aqua Soil"]


@pytest.mark.django_db
def test_list_filters_by_category_and_search(api_client):
    plants = CategoryFactory(slug="plants")
    ProductFactory(name="Java Fern", category=plants)
    ProductFactory(name="Java Moss")
    ProductFactory(name="Canister Filter", category=plants)

    assert api_client.get(PRODUCTS_URL, {"category": "plants"}).json()["count"] == 2
    assert api_client.get(PRODUCTS_URL, {"category": "plants", "search": "java"}).json()["count"] == 1


@pytest.mark.django_db
def test_detail_includes_variants(api_client):
    variant = ProductVariantFactory()
    body = api_client.get(f"{PRODUCTS_URL}{variant.product_id}/").json()
    assert body["has_variants"] is True
    assert body["variants"][0]["sku"] == variant.sku


@pytest.mark.django_db
def test_detail_missing_is_404(api_client):
    assert api_client.get(f"{PRODUCTS_URL}999999/").status_code == 404


@pytest.mark.django_db
def test_detail_cache_drops_after_stock_change(api_client, django_capture_on_commit_callbacks):
    product = ProductFactory(stock=10)
    assert api_client.get(f"{PRODUCTS_URL}{product.id}/").json()["stock"] == 10

    with django_capture_on_commit_callbacks(execute=True):
        commit_stock([StockLine(product_id=product.id, quantity=3)])

    assert api_client.get(f"{PRODUCTS_URL}{product.id}/").json()["stock"] == 7


@pytest.mark.django_db
def test_catalog_scope_is_throttled(api_client, monkeypatch):
    monkeypatch.setattr(SimpleRateThrottle, "THROTTLE_RATES", {"user": "100/min", "anon": "100/min", "catalog": "1/min"})

    assert api_client.get(PRODUCTS_URL).status_code == 200
    assert api_client.get(PRODUCTS_URL).status_code == 429
