import pytest
from django.core.cache import cache
from orders import staging


@pytest.fixture(autouse=True)
def _isolate_caches():
    """Every test starts with an empty cache and a fresh staging store."""
    cache.clear()
    staging._stores.clear()
    yield
    cache.clear()
    staging._stores.clear()


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()
