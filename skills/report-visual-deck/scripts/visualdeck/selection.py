"""Selection index over a page/visual hierarchy.

Keys are ``<page>::<visual>`` with both parts percent-encoded, so any id
(including ones containing ``::``) round-trips through ``parse_visual_key``.
Export order always comes from the snapshot, never from the order in which
visuals were toggled.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Literal, Optional, Tuple
from urllib.parse import quote, unquote

from .models import HierarchySnapshot, PageRef, VisualRef

KEY_SEPARATOR = "::"

PageState = Literal["all", "partial", "none"]


def make_visual_key(page_name: str, visual_name: str) -> str:
    return f"{quote(str(page_name), safe='')}{KEY_SEPARATOR}{quote(str(visual_name), safe='')}"


def parse_visual_key(key: str) -> Tuple[str, str]:
    page_part, sep, visual_part = key.partition(KEY_SEPARATOR)
    if not sep:
        raise ValueError(f"Not a visual key: {key!r}")
    return unquote(page_part), unquote(visual_part)


class SelectionIndex:
    """Maps every visual of the current snapshot to a key and tracks which keys are selected."""

    def __init__(self, snapshot: Optional[HierarchySnapshot] = None):
        self._snapshot = HierarchySnapshot()
        self._index: Dict[str, Tuple[PageRef, VisualRef]] = {}
        self._selected: set[str] = set()
        if snapshot is not None:
            self.rebuild(snapshot)

    @property
    def snapshot(self) -> HierarchySnapshot:
        return self._snapshot

    def rebuild(self, snapshot: HierarchySnapshot) -> None:
        """Replace every key with those of ``snapshot`` and clear membership."""
        self._snapshot = snapshot
        self._index = {}
        for page, visual in snapshot.pairs():
            self._index[make_visual_key(page.name, visual.name)] = (page, visual)
        self._selected = set()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def keys(self) -> List[str]:
        return list(self._index)

    def lookup(self, key: str) -> Tuple[PageRef, VisualRef]:
        return self._index[key]

    def is_selected(self, key: str) -> bool:
        return key in self._selected and key in self._index

    def toggle(self, key: str, included: bool) -> bool:
        """Set membership of ``key``; unknown keys are ignored. Returns the resulting membership."""
        if key not in self._index:
            self._selected.discard(key)
            return False
        if included:
            self._selected.add(key)
        else:
            self._selected.discard(key)
        return included

    def toggle_many(self, keys: Iterable[str], included: bool) -> None:
        for key in keys:
            self.toggle(key, included)

    def page_keys(self, page_name: str) -> List[str]:
        return [key for key, (page, _visual) in self._index.items() if page.name == page_name]

    def toggle_page(self, page_name: str, included: bool) -> int:
        """Select or deselect every visual of one page. Returns how many keys were touched."""
        keys = self.page_keys(page_name)
        self.toggle_many(keys, included)
        return len(keys)

    def page_state(self, page_name: str) -> PageState:
        keys = self.page_keys(page_name)
        checked = sum(1 for key in keys if key in self._selected)
        if keys and checked == len(keys):
            return "all"
        if checked:
            return "partial"
        return "none"

    def select_all(self) -> None:
        self._selected = set(self._index)

    def clear(self) -> None:
        self._selected = set()

    def _prune(self) -> None:
        stale = self._selected.difference(self._index)
        if stale:
            self._selected.difference_update(stale)

    def collect_ordered(self) -> List[Tuple[PageRef, VisualRef]]:
        """Selected (page, visual) pairs in page order, then visual order within the page."""
        self._prune()
        return [pair for key, pair in self._index.items() if key in self._selected]

    def count_selected(self) -> int:
        self._prune()
        return len(self._selected)
