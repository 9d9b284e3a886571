"""Short narrative memory kept by every civling."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from civling_sim.core.config import MEMORY_LIMIT


class MemoryLog:
    """Bounded, oldest-first list of narrative strings."""

    def __init__(self, entries: Optional[Iterable[str]] = None, limit: int = MEMORY_LIMIT) -> None:
        self._entries: deque[str] = deque(entries or (), maxlen=limit)

    def add(self, entry: str) -> None:
        self._entries.append(entry)

    def recent(self, count: int) -> list[str]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def count_prefix(self, prefix: str, window: int) -> int:
        """How many of the last ``window`` entries start with ``prefix``."""
        return sum(1 for e in self.recent(window) if e.startswith(prefix))

    def all_contain(self, fragment: str, window: int) -> bool:
        """True when the last ``window`` entries exist and each contains ``fragment``."""
        tail = self.recent(window)
        return len(tail) == window and all(fragment in e for e in tail)

    def to_list(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)
