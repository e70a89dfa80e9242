"""In-memory registry of tracked products.

The registry owns every :class:`~pss_monitor.models.WatchEntry`. It holds
no decision logic; callers serialise access through the monitor lock.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .models import WatchEntry


class MonitorRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, WatchEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[WatchEntry]:
        return iter(list(self._entries.values()))

    def get(self, key: str) -> Optional[WatchEntry]:
        return self._entries.get(str(key))

    def put(self, entry: WatchEntry) -> None:
        """Insert or replace the entry for ``entry.key``."""
        self._entries[entry.key] = entry

    def remove(self, key: str) -> bool:
        return self._entries.pop(str(key), None) is not None

    def keys(self) -> List[str]:
        """Stable copy of the keys, safe to iterate while entries change."""
        return list(self._entries.keys())

    def entries(self) -> List[WatchEntry]:
        return list(self._entries.values())


__all__ = ["MonitorRegistry"]
