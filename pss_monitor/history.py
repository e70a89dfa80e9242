"""Record of every product ever put under monitoring.

History outlives the registry: removing a product from monitoring leaves its
history row alone. Rows only disappear through :meth:`HistoryStore.remove`
or :meth:`HistoryStore.clear`.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .models import HistoryEntry, ProductDescriptor, SizeMapping
from .utils import now_utc


class HistoryStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, HistoryEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def record(self, descriptor: ProductDescriptor, size_mapping: SizeMapping, product_id: Optional[str] = None) -> HistoryEntry:
        """Create (or refresh) the history row for a product being added."""
        pid = str(product_id or descriptor.product_id)
        now = now_utc()
        entry = HistoryEntry(
            product_id=pid,
            title=descriptor.title or f"Product {pid}",
            brand=descriptor.brand,
            price=descriptor.price,
            original_price=descriptor.original_price,
            discount=descriptor.discount,
            image_url=descriptor.image_url,
            size_mapping=dict(size_mapping),
            added_at=now,
            last_monitored=now,
        )
        with self._lock:
            self._items[pid] = entry
        return entry

    def touch(self, key: str) -> None:
        """Bump ``last_monitored``; unknown keys are ignored."""
        with self._lock:
            entry = self._items.get(str(key))
            if entry is not None:
                entry.last_monitored = now_utc()

    def get(self, key: str) -> Optional[HistoryEntry]:
        with self._lock:
            return self._items.get(str(key))

    def list(self) -> List[HistoryEntry]:
        """Entries sorted by ``last_monitored``, most recent first."""
        with self._lock:
            items = list(self._items.values())
        return sorted(items, key=lambda e: e.last_monitored, reverse=True)

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(str(key), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


__all__ = ["HistoryStore"]
