from __future__ import annotations
"""Multi-item selection over the displayed view."""
from typing import Iterable, Sequence


class Selection:
    """Set of selected keys plus the anchor used for range selection."""

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._anchor: str | None = None

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    @property
    def anchor(self) -> str | None:
        return self._anchor

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def toggle(self, key: str) -> None:
        if key in self._keys:
            self._keys.remove(key)
        else:
            self._keys.add(key)
        self._anchor = key

    def select_all(self, view_keys: Iterable[str]) -> None:
        self._keys = set(view_keys)

    def clear(self) -> None:
        self._keys.clear()
        self._anchor = None

    def select_range(self, from_key: str, to_key: str, view_keys: Sequence[str]) -> bool:
        """Add the inclusive span between two visible keys.

        Returns ``False`` without touching the selection when either key is
        not part of ``view_keys``.
        """

        try:
            start = view_keys.index(from_key)
            end = view_keys.index(to_key)
        except ValueError:
            return False
        if start > end:
            start, end = end, start
        self._keys.update(view_keys[start:end + 1])
        return True

    def extend_to(self, key: str, view_keys: Sequence[str]) -> bool:
        if self._anchor is None:
            self.toggle(key)
            return True
        return self.select_range(self._anchor, key, view_keys)
