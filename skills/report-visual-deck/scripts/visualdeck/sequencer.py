"""Walk the selected visuals in order and place one image slide per visual.

Image export only works against the report's active page, so acquisitions
run strictly one after another and the page is switched (then allowed to
settle) only when it changes between consecutive entries. The first
acquisition failure aborts the run before anything is saved.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from .acquisition import ImageAcquirer
from .builder import DeckBuilder
from .errors import PreconditionError
from .geometry import FRAME_PADDING, SLIDE_MARGIN, aspect_ratio_for, content_region, fit_rect
from .hierarchy import maybe_await
from .models import PageRef, Rect, VisualRef
from .status import StatusLog

DEFAULT_SETTLE_DELAY = 0.3

SLIDE_STYLE = {
    "background": "F7FAFD",
    "band_fill": "E8F1F8",
    "band_line": "D2E0EC",
    "title": "17324A",
    "subtitle": "43607A",
    "frame_fill": "FFFFFF",
    "frame_line": "D5E1ED",
    "font": "Aptos",
}

DECK_AUTHOR = "Power BI PPTX Generator"
DECK_SUBJECT = "Automated visual export"
DEFAULT_DECK_TITLE = "Power BI Deck"


class ExportPhase(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    PLACING = "placing"
    DONE = "done"
    FAILED = "failed"


class PageActivator:
    """Switches the report's active page, skipping the switch when the page is already active."""

    def __init__(
        self,
        report: Any,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.report = report
        self.settle_delay = settle_delay
        self._sleep = sleep
        self.active_page: Optional[str] = None
        self.switches: List[str] = []

    async def ensure(self, page: PageRef) -> bool:
        """Make ``page`` active; returns True when a switch happened."""
        if page.name == self.active_page:
            return False
        await maybe_await(self.report.set_page(page.name))
        self.active_page = page.name
        self.switches.append(page.name)
        # Prefer an explicit repaint signal; fall back to a fixed wait.
        render_signal = getattr(self.report, "wait_for_render", None)
        if callable(render_signal):
            await maybe_await(render_signal())
        else:
            await self._sleep(self.settle_delay)
        return True


def slide_title(page: PageRef, visual: VisualRef, *, include_page_name: bool) -> str:
    if include_page_name:
        return f"{page.label} - {visual.label}"
    return visual.label


class DeckComposer:
    def __init__(
        self,
        report: Any,
        acquirer: ImageAcquirer,
        builder: DeckBuilder,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        include_page_name: bool = False,
        status: Optional[StatusLog] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.report = report
        self.acquirer = acquirer
        self.builder = builder
        self.settle_delay = settle_delay
        self.include_page_name = include_page_name
        self.status = status
        self._sleep = sleep
        self.phase = ExportPhase.IDLE
        self.index = -1
        self.page_switches: List[str] = []

    def _log(self, message: str) -> None:
        if self.status is not None:
            self.status(message)

    async def compose(
        self,
        selected: Sequence[Tuple[PageRef, VisualRef]],
        scale: float,
        layout_name: str,
        *,
        title: str = DEFAULT_DECK_TITLE,
    ) -> DeckBuilder:
        if not selected:
            raise PreconditionError("Select at least one visual.")

        dimensions = self.builder.set_layout(layout_name)
        self.builder.set_metadata(title=title or DEFAULT_DECK_TITLE, author=DECK_AUTHOR, subject=DECK_SUBJECT)

        pages = PageActivator(self.report, settle_delay=self.settle_delay, sleep=self._sleep)
        self.page_switches = pages.switches
        total = len(selected)
        try:
            for index, (page, visual) in enumerate(selected):
                self.index = index
                self.phase = ExportPhase.ACQUIRING
                self._log(f"Exporting {index + 1}/{total}: {visual.label}")

                await pages.ensure(page)
                image = await self.acquirer.acquire(page, visual, scale)

                self.phase = ExportPhase.PLACING
                self.place_visual(dimensions, page, visual, image)
        except BaseException:
            self.phase = ExportPhase.FAILED
            raise

        self.phase = ExportPhase.DONE
        return self.builder

    def place_visual(
        self, dimensions: Tuple[float, float], page: PageRef, visual: VisualRef, image: str
    ) -> Rect:
        width, _height = dimensions
        builder = self.builder
        slide = builder.add_slide(background=SLIDE_STYLE["background"])

        band_w = width - SLIDE_MARGIN * 2
        builder.add_rect(
            slide,
            Rect(SLIDE_MARGIN, 0.18, band_w, 0.52),
            fill=SLIDE_STYLE["band_fill"],
            line=SLIDE_STYLE["band_line"],
        )
        builder.add_text(
            slide,
            slide_title(page, visual, include_page_name=self.include_page_name),
            Rect(SLIDE_MARGIN + 0.12, 0.29, band_w - 0.24, 0.22),
            font_face=SLIDE_STYLE["font"],
            color=SLIDE_STYLE["title"],
            size_pt=14,
            bold=True,
            shrink=True,
        )
        builder.add_text(
            slide,
            f"{visual.kind or 'visual'} - {visual.name}",
            Rect(SLIDE_MARGIN + 0.12, 0.52, band_w - 0.24, 0.13),
            font_face=SLIDE_STYLE["font"],
            color=SLIDE_STYLE["subtitle"],
            size_pt=9,
        )

        fitted = fit_rect(content_region(dimensions), aspect_ratio_for(visual))
        builder.add_rect(
            slide,
            fitted.inflate(FRAME_PADDING),
            fill=SLIDE_STYLE["frame_fill"],
            line=SLIDE_STYLE["frame_line"],
        )
        builder.add_image(slide, image, fitted)
        return fitted
