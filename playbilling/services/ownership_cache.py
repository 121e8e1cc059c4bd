"""
Ownership Cache - Local record of which products the user owns.

A product id is present iff the client believes the user owns it. Each
category (one-time products, subscriptions) has its own cache stored under
its own preference key. Contents are kept as one JSON object so a write is a
single durable operation.
"""

import json
from collections.abc import Iterable

from structlog import get_logger

from playbilling.models.api import ProductType
from playbilling.services.preferences import PreferenceStore

logger = get_logger(__name__)

SETTINGS_VERSION = ".v2_4"
RESTORE_KEY = ".products.restored" + SETTINGS_VERSION
MANAGED_PRODUCTS_CACHE_KEY = ".products.cache" + SETTINGS_VERSION
SUBSCRIPTIONS_CACHE_KEY = ".subscriptions.cache" + SETTINGS_VERSION


def cache_key(package_name: str, product_type: ProductType) -> str:
    """Preference key for a category's ownership cache."""
    if product_type == ProductType.SUBSCRIPTION:
        return package_name + SUBSCRIPTIONS_CACHE_KEY
    return package_name + MANAGED_PRODUCTS_CACHE_KEY


def restore_flag_key(package_name: str) -> str:
    """Preference key for the history-restored flag."""
    return package_name + RESTORE_KEY


class OwnershipCache:
    """Write-through productId -> purchaseToken map for one category."""

    def __init__(self, store: PreferenceStore, key: str) -> None:
        self._store = store
        self._key = key
        self._entries: dict[str, str] = self._load()

    @property
    def key(self) -> str:
        return self._key

    def _load(self) -> dict[str, str]:
        raw = self._store.get(self._key)
        if not raw:
            return {}
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("ownership_cache_corrupt", key=self._key)
            return {}
        if not isinstance(decoded, dict):
            logger.warning("ownership_cache_corrupt", key=self._key)
            return {}
        return {str(k): str(v) for k, v in decoded.items()}

    def _flush(self, entries: dict[str, str]) -> None:
        # Persist first: memory only changes once the store accepted the write.
        self._store.set(self._key, json.dumps(entries))
        self._entries = entries

    def contains(self, product_id: str) -> bool:
        return product_id in self._entries

    def list(self) -> list[str]:
        """Owned product ids in insertion order."""
        return list(self._entries)

    def token_for(self, product_id: str) -> str | None:
        return self._entries.get(product_id)

    def put(self, product_id: str, purchase_token: str) -> None:
        entries = dict(self._entries)
        entries[product_id] = purchase_token
        self._flush(entries)

    def remove(self, product_id: str) -> None:
        if product_id not in self._entries:
            return
        entries = dict(self._entries)
        del entries[product_id]
        self._flush(entries)

    def clear(self) -> None:
        self._flush({})

    def replace(self, entries: Iterable[tuple[str, str]]) -> None:
        """Replace the whole cache in a single write (clear, then insert in order)."""
        self._flush(dict(entries))

    def reload(self) -> None:
        """Re-read the cache from the store."""
        self._entries = self._load()

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<OwnershipCache(key={self._key}, products={len(self._entries)})>"


class RestoreFlag:
    """Persistent "purchase history restored" flag. Only ever set, never cleared here."""

    TRUE = "true"

    def __init__(self, store: PreferenceStore, key: str) -> None:
        self._store = store
        self._key = key

    def is_set(self) -> bool:
        return self._store.get(self._key) == self.TRUE

    def set(self) -> None:
        self._store.set(self._key, self.TRUE)
