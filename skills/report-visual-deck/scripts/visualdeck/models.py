"""Plain data types shared by the selection, acquisition and layout code."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Tuple


@dataclass(frozen=True)
class PageRef:
    name: str
    display_name: str = ""
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class VisualRef:
    """One visual of a report page.

    ``name`` is unique only within ``page_name``; ``handle`` is the live SDK
    object (if any) and is ignored for equality.
    """

    name: str
    page_name: str
    title: str = ""
    kind: str = ""
    width: Optional[float] = None
    height: Optional[float] = None
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def label(self) -> str:
        return self.title or self.name


@dataclass(frozen=True)
class PageGroup:
    page: PageRef
    visuals: Tuple[VisualRef, ...] = ()


@dataclass(frozen=True)
class HierarchySnapshot:
    """Ordered pages with their ordered visuals, rebuilt wholesale on every load."""

    groups: Tuple[PageGroup, ...] = ()

    def __iter__(self) -> Iterator[PageGroup]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    @property
    def visual_count(self) -> int:
        return sum(len(group.visuals) for group in self.groups)

    def pairs(self) -> Iterator[Tuple[PageRef, VisualRef]]:
        for group in self.groups:
            for visual in group.visuals:
                yield group.page, visual


@dataclass(frozen=True)
class ImageBlob:
    """Binary image payload with an optional declared MIME type."""

    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def inflate(self, pad: float) -> "Rect":
        return Rect(self.x - pad, self.y - pad, self.w + pad * 2, self.h + pad * 2)
