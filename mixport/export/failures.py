"""Process-wide record of products whose export failed."""

from __future__ import annotations

import threading
import typing as typ


class FailureSet:
    """Lock-guarded set of failed product identifiers.

    Product tasks each add only their own identifier; the set is read after
    every product task has been joined.
    """

    def __init__(self) -> None:
        """Create an empty set."""
        self._lock = threading.Lock()
        self._products: set[str] = set()

    def add(self, product: str) -> None:
        """Record ``product`` as failed."""
        with self._lock:
            self._products.add(product)

    def products(self) -> tuple[str, ...]:
        """Return the failed products in sorted order."""
        with self._lock:
            return tuple(sorted(self._products))

    def __contains__(self, product: object) -> bool:
        """Return whether ``product`` failed."""
        with self._lock:
            return product in self._products

    def __iter__(self) -> typ.Iterator[str]:
        """Iterate a sorted snapshot of the failed products."""
        return iter(self.products())

    def __len__(self) -> int:
        """Return the number of failed products."""
        with self._lock:
            return len(self._products)

    def __bool__(self) -> bool:
        """Return whether any product failed."""
        return len(self) > 0
