"""Read pages and visuals from a report source into a ``HierarchySnapshot``."""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Any, List, Optional, Protocol

from .models import HierarchySnapshot, PageGroup, PageRef, VisualRef


class ReportSource(Protocol):
    """Minimal surface of an embedded report.

    Implementations may also expose ``export_visual_as_image`` (on the report,
    its pages or its visuals), ``wait_until_loaded()`` and ``wait_for_render()``.
    Any method may be sync or async.
    """

    def get_pages(self) -> Any: ...

    def set_page(self, name: str) -> Any: ...


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _attr(obj: Any, *names: str) -> Any:
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value not in (None, ""):
            return value
    return None


def _number(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def page_ref_from(page: Any) -> PageRef:
    name = str(_attr(page, "name", "id") or "")
    display_name = str(_attr(page, "display_name", "displayName") or "")
    return PageRef(name=name, display_name=display_name, handle=page)


def visual_ref_from(page_name: str, visual: Any) -> Optional[VisualRef]:
    name = _attr(visual, "name", "id")
    if not name:
        return None
    layout = _attr(visual, "layout")
    width = _attr(layout, "width") if layout is not None else _attr(visual, "width")
    height = _attr(layout, "height") if layout is not None else _attr(visual, "height")
    return VisualRef(
        name=str(name),
        page_name=page_name,
        title=str(_attr(visual, "title") or ""),
        kind=str(_attr(visual, "type", "kind") or ""),
        width=_number(width),
        height=_number(height),
        handle=visual,
    )


async def load_snapshot(report: Any) -> HierarchySnapshot:
    """Enumerate pages, then the visuals of each page; visuals without a name are dropped."""
    pages = await maybe_await(report.get_pages())
    groups: List[PageGroup] = []
    for page in pages or []:
        page_ref = page_ref_from(page)
        raw_visuals = await maybe_await(page.get_visuals())
        visuals = []
        for raw in raw_visuals or []:
            visual = visual_ref_from(page_ref.name, raw)
            if visual is not None:
                visuals.append(visual)
        groups.append(PageGroup(page=page_ref, visuals=tuple(visuals)))
    return HierarchySnapshot(groups=tuple(groups))
