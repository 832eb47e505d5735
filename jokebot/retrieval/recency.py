"""
Recency memory - bounded FIFO of recently shown joke identities.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator


# Number of recently shown jokes remembered per conversation
RECENT_JOKES_CAPACITY = 5


class RecencyMemory:
    """
    Fixed-capacity window of joke contents shown to the user.

    Recording past capacity drops the oldest entries first.
    """

    def __init__(self, items: Iterable[str] = (), capacity: int = RECENT_JOKES_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: deque[str] = deque(maxlen=capacity)
        self.record(items)

    def record(self, contents: Iterable[str]) -> None:
        """Append identities in order, keeping only the last ``capacity``."""
        for content in contents:
            self._items.append(content.strip())

    def contains(self, identity: str) -> bool:
        return identity.strip() in self._items

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> list[str]:
        """Snapshot of the window, oldest first."""
        return list(self._items)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.contains(identity)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"RecencyMemory({self.items()!r}, capacity={self.capacity})"
