from dataclasses import replace
from datetime import timedelta

import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.utils import timezone
from orders.staging import CacheStagedOrderStore, InMemoryStagedOrderStore, get_store


def _expire(store: InMemoryStagedOrderStore, ref: str) -> None:
    entry = store._entries[ref]
    store._entries[ref] = replace(entry, expires_at=timezone.now() - timedelta(seconds=1))


def test_entry_lives_for_the_configured_window(settings):
    settings.ORDER_STAGING_TTL_MINUTES = 15
    entry = InMemoryStagedOrderStore().store("REF1", {"user_id": 1})
    assert entry.expires_at - entry.created_at == timedelta(minutes=15)


def test_entry_is_still_live_at_its_expiry_instant():
    entry = InMemoryStagedOrderStore().store("REF1", {"user_id": 1})
    assert not entry.is_expired(entry.expires_at)
    assert entry.is_expired(entry.expires_at + timedelta(microseconds=1))


def test_consume_hands_out_an_entry_once():
    store = InMemoryStagedOrderStore()
    store.store("REF1", {"user_id": 1})
    assert store.consume("REF1").payload == {"user_id": 1}
    assert store.consume("REF1") is None
    assert store.get("REF1") is None


def test_expired_entry_is_gone_on_read_and_consume():
    store = InMemoryStagedOrderStore()
    store.store("OLD", {"user_id": 1})
    store.store("OLD2", {"user_id": 2})
    _expire(store, "OLD")
    _expire(store, "OLD2")
    assert store.get("OLD") is None
    assert store.consume("OLD2") is None
    assert store.stats()["total"] == 0


def test_remove_is_idempotent():
    store = InMemoryStagedOrderStore()
    store.store("REF1", {})
    assert store.remove("REF1") is True
    assert store.remove("REF1") is False


def test_purge_drops_only_expired_entries():
    store = InMemoryStagedOrderStore()
    store.store("KEEP", {})
    store.store("DROP", {})
    _expire(store, "DROP")
    assert store.purge_expired() == 1
    assert store.get("KEEP") is not None
    assert store.stats()["total"] == 1


def test_purge_command_uses_configured_store(capsys):
    store = get_store()
    store.store("DROP", {})
    _expire(store, "DROP")
    call_command("purge_staged_orders")
    assert "Purged 1 expired staged orders." in capsys.readouterr().out


def test_cache_backend_round_trip_and_single_consume(settings):
    settings.ORDER_STAGING_BACKEND = "cache"
    store = get_store()
    assert isinstance(store, CacheStagedOrderStore)
    store.store("REF9", {"items": [{"product_id": 1, "unit_price": "100000.00"}]})
    assert store.get("REF9").payload["items"][0]["unit_price"] == "100000.00"
    assert store.consume("REF9") is not None
    assert store.consume("REF9") is None


def test_cache_backend_ignores_expired_payloads():
    store = CacheStagedOrderStore()
    entry = store.store("REF2", {})
    stale = replace(entry, expires_at=timezone.now() - timedelta(seconds=1))
    cache.set(store._key("REF2"), stale.to_dict(), 60)
    assert store.get("REF2") is None
    assert cache.get(store._key("REF2")) is None


def test_unknown_backend_is_rejected(settings):
    settings.ORDER_STAGING_BACKEND = "disk"
    with pytest.raises(ValueError):
        get_store()
