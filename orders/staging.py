"""Temporary storage for gateway orders awaiting payment.

A VNPay checkout persists nothing until the gateway calls back: the order
payload is staged here under its transaction reference and promoted into a
real Order only through `consume`, which hands each entry out once.

Two backends implement `StagedOrderStore`:

- `InMemoryStagedOrderStore`: a process-local dict guarded by a lock.
  Entries are lost on restart and are not shared between workers.
- `CacheStagedOrderStore`: the Django cache with native expiry; shared
  across instances when the cache is Redis.

`ORDER_STAGING_BACKEND` selects the backend (`memory` or `cache`).
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

logger = logging.getLogger("aquashop.orders")


def _ttl() -> timedelta:
    return timedelta(minutes=int(getattr(settings, "ORDER_STAGING_TTL_MINUTES", 15)))


@dataclass(frozen=True)
class StagedOrder:
    transaction_ref: str
    payload: dict
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or timezone.now()) > self.expires_at

    def to_dict(self) -> dict:
        return {
            "transaction_ref": self.transaction_ref,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StagedOrder":
        return cls(
            transaction_ref=data["transaction_ref"],
            payload=data["payload"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class StagedOrderStore(Protocol):
    def store(self, ref: str, payload: dict) -> StagedOrder: ...

    def get(self, ref: str) -> Optional[StagedOrder]: ...

    def remove(self, ref: str) -> bool: ...

    def consume(self, ref: str) -> Optional[StagedOrder]: ...

    def purge_expired(self) -> int: ...

    def stats(self) -> dict: ...


class InMemoryStagedOrderStore:
    def __init__(self):
        self._entries: dict[str, StagedOrder] = {}
        self._lock = threading.Lock()

    def _sweep(self, now: datetime) -> int:
        expired = [ref for ref, entry in self._entries.items() if entry.is_expired(now)]
        for ref in expired:
            del self._entries[ref]
        return len(expired)

    def store(self, ref: str, payload: dict) -> StagedOrder:
        now = timezone.now()
        entry = StagedOrder(transaction_ref=ref, payload=payload, created_at=now, expires_at=now + _ttl())
        with self._lock:
            self._sweep(now)
            self._entries[ref] = entry
        return entry

    def get(self, ref: str) -> Optional[StagedOrder]:
        with self._lock:
            entry = self._entries.get(ref)
            if entry is not None and entry.is_expired():
                del self._entries[ref]
                return None
            return entry

    def remove(self, ref: str) -> bool:
        with self._lock:
            return self._entries.pop(ref, None) is not None

    def consume(self, ref: str) -> Optional[StagedOrder]:
        with self._lock:
            entry = self._entries.pop(ref, None)
        if entry is None or entry.is_expired():
            return None
        return entry

    def purge_expired(self) -> int:
        with self._lock:
            return self._sweep(timezone.now())

    def stats(self) -> dict:
        now = timezone.now()
        with self._lock:
            entries = list(self._entries.values())
        oldest = min((e.created_at for e in entries), default=None)
        return {
            "backend": "memory",
            "total": len(entries),
            "expired": sum(1 for e in entries if e.is_expired(now)),
            "oldest_created_at": oldest.isoformat() if oldest else None,
            "ttl_minutes": int(_ttl().total_seconds() // 60),
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class CacheStagedOrderStore:
    key_prefix = "orders:staged:"

    def _key(self, ref: str) -> str:
        return f"{self.key_prefix}{ref}"

    def store(self, ref: str, payload: dict) -> StagedOrder:
        now = timezone.now()
        entry = StagedOrder(transaction_ref=ref, payload=payload, created_at=now, expires_at=now + _ttl())
        cache.set(self._key(ref), entry.to_dict(), int(_ttl().total_seconds()))
        return entry

    def get(self, ref: str) -> Optional[StagedOrder]:
        data = cache.get(self._key(ref))
        if data is None:
            return None
        entry = StagedOrder.from_dict(data)
        if entry.is_expired():
            cache.delete(self._key(ref))
            return None
        return entry

    def remove(self, ref: str) -> bool:
        return bool(cache.delete(self._key(ref)))

    def consume(self, ref: str) -> Optional[StagedOrder]:
        entry = self.get(ref)
        # Only the caller whose delete removed the key gets the entry.
        if entry is None or not cache.delete(self._key(ref)):
            return None
        return entry

    def purge_expired(self) -> int:
        return 0

    def stats(self) -> dict:
        return {"backend": "cache", "total": None, "ttl_minutes": int(_ttl().total_seconds() // 60)}


_stores: dict[str, StagedOrderStore] = {}
_stores_lock = threading.Lock()


def get_store() -> StagedOrderStore:
    backend = getattr(settings, "ORDER_STAGING_BACKEND", "memory")
    with _stores_lock:
        if backend not in _stores:
            if backend == "cache":
                _stores[backend] = CacheStagedOrderStore()
            elif backend == "memory":
                _stores[backend] = InMemoryStagedOrderStore()
            else:
                raise ValueError(f"Unknown ORDER_STAGING_BACKEND: {backend}")
            logger.info("orders.staging_backend", extra={"event": "orders.staging_backend", "backend": backend})
        return _stores[backend]
