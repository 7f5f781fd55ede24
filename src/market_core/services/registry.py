"""
In-memory product registry.

The registry is the runtime source of truth for product state. Entries are
guarded by striped locks so that concurrent callers mutating different
products never contend on a single global lock.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional

from ..models import Product, normalize_alias

logger = logging.getLogger(__name__)

Mutator = Callable[[Product], None]

_DEFAULT_STRIPES = 32


class ProductRegistry:
    """
    Concurrent alias -> Product store.

    - get_or_create() constructs a missing entry exactly once under concurrency
    - update() runs a read-modify-write atomically for one entry
    - snapshot() returns per-entry consistent copies; the set of entries may
      change while it runs, which is not an error
    """

    def __init__(self, stripes: int = _DEFAULT_STRIPES):
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._products: Dict[str, Product] = {}
        self._locks = [threading.RLock() for _ in range(stripes)]
        # Guards insertions, removals and key iteration; never held while taking a stripe
        self._struct_lock = threading.Lock()

    def _lock_for(self, alias: str) -> threading.RLock:
        return self._locks[hash(alias) % len(self._locks)]

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, alias: object) -> bool:
        return isinstance(alias, str) and normalize_alias(alias) in self._products

    def get(self, alias: str) -> Optional[Product]:
        return self._products.get(normalize_alias(alias))

    def find(self, item_type: str, variant: int = 0) -> Optional[Product]:
        """Look a product up by its display type and variant."""
        for product in self._entries():
            if product.matches(item_type, variant):
                return product
        return None

    def get_or_create(self, alias: str, factory: Callable[[], Product]) -> Product:
        """Return the entry for alias, constructing it with factory if absent."""
        key = normalize_alias(alias)
        existing = self._products.get(key)
        if existing is not None:
            return existing
        with self._lock_for(key):
            # Re-check under the lock; another caller may have won the race
            existing = self._products.get(key)
            if existing is not None:
                return existing
            product = factory()
            if product.alias != key:
                raise ValueError(f"Factory produced alias {product.alias!r}, expected {key!r}")
            with self._struct_lock:
                self._products[key] = product
            return product

    def put(self, product: Product) -> None:
        with self._lock_for(product.alias):
            with self._struct_lock:
                self._products[product.alias] = product

    def update(self, alias: str, mutator: Mutator) -> Optional[Product]:
        """
        Apply mutator to the entry for alias while holding its lock.

        Returns the mutated product, or None when alias is unknown.
        """
        key = normalize_alias(alias)
        with self._lock_for(key):
            product = self._products.get(key)
            if product is None:
                return None
            mutator(product)
            return product

    def remove(self, alias: str) -> Optional[Product]:
        key = normalize_alias(alias)
        with self._lock_for(key):
            with self._struct_lock:
                return self._products.pop(key, None)

    def _entries(self) -> List[Product]:
        with self._struct_lock:
            return list(self._products.values())

    def aliases(self) -> List[str]:
        with self._struct_lock:
            return list(self._products)

    def snapshot(self) -> List[Product]:
        """Copy every entry, each under its own lock."""
        copies: List[Product] = []
        for product in self._entries():
            with self._lock_for(product.alias):
                copies.append(replace(product))
        return copies

    def __iter__(self) -> Iterator[Product]:
        return iter(self.snapshot())
