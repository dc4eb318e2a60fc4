"""Product read cache.

Product detail payloads are cached under a per-product key. Any stock
mutation must call `invalidate_product` in the same step so readers never
see stale stock or price.
"""

import logging

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger("aquashop.catalog")


def product_cache_key(product_id: int) -> str:
    return f"catalog:product:{product_id}"


def get_cached_product(product_id: int, loader):
    """Return the cached payload for a product, filling it via `loader()` on a miss."""
    key = product_cache_key(product_id)
    data = cache.get(key)
    if data is None:
        data = loader()
        if data is not None:
            cache.set(key, data, getattr(settings, "PRODUCT_CACHE_TTL_SECONDS", 300))
    return data


def invalidate_product(product_id: int) -> None:
    cache.delete(product_cache_key(product_id))
    logger.debug("catalog.cache_invalidated", extra={"event": "catalog.cache_invalidated", "product_id": product_id})
