"""Rasterize report visuals through an ordered chain of export strategies.

The export entry point is not guaranteed to exist, nor to accept the same
arguments, across report SDK versions. Strategies are therefore built from
whichever objects (report, visual, page) expose ``export_visual_as_image``,
each tried with decreasing argument specificity. The first call whose result
normalizes to an image wins.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .codec import Fetcher, normalize
from .errors import AcquisitionFailedError, CapabilityMissingError, error_message
from .models import PageRef, VisualRef

ENTRY_POINT_NAMES = ("export_visual_as_image", "exportVisualAsImage")

DEFAULT_VISUAL_SIZE = (1280, 720)
MIN_IMAGE_SIZE = (640, 360)

CAPABILITY_MISSING_MESSAGE = (
    "export_visual_as_image is not exposed by the report in this environment. "
    "Confirm tenant feature support, permissions, and SDK capability."
)


@dataclass(frozen=True)
class AcquisitionStrategy:
    label: str
    call: Callable[[], Any]


@dataclass(frozen=True)
class AttemptRecord:
    label: str
    error: Optional[str]


def _declared(value: Any, default: int) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float(default)
    return number if number > 0 else float(default)


def target_pixel_size(visual: VisualRef, scale: float) -> Tuple[int, int]:
    width = _declared(visual.width, DEFAULT_VISUAL_SIZE[0])
    height = _declared(visual.height, DEFAULT_VISUAL_SIZE[1])
    return (
        max(round(width * scale), MIN_IMAGE_SIZE[0]),
        max(round(height * scale), MIN_IMAGE_SIZE[1]),
    )


def _entry_point(obj: Any) -> Optional[Callable[..., Any]]:
    if obj is None:
        return None
    for name in ENTRY_POINT_NAMES:
        fn = getattr(obj, name, None)
        if callable(fn):
            return fn
    return None


def build_strategies(
    report: Any, page: PageRef, visual: VisualRef, width: int, height: int
) -> List[AcquisitionStrategy]:
    strategies: List[AcquisitionStrategy] = []
    dims = {"width": width, "height": height}

    report_fn = _entry_point(report)
    if report_fn is not None:
        strategies.extend(
            [
                AcquisitionStrategy("report(width, height)", lambda: report_fn(page.name, visual.name, width, height)),
                AcquisitionStrategy("report(dims)", lambda: report_fn(page.name, visual.name, dict(dims))),
                AcquisitionStrategy(
                    "report(request)",
                    lambda: report_fn({"pageName": page.name, "visualName": visual.name, **dims}),
                ),
                AcquisitionStrategy("report()", lambda: report_fn(page.name, visual.name)),
            ]
        )

    visual_fn = _entry_point(visual.handle)
    if visual_fn is not None:
        strategies.extend(
            [
                AcquisitionStrategy("visual(width, height)", lambda: visual_fn(width, height)),
                AcquisitionStrategy("visual(dims)", lambda: visual_fn(dict(dims))),
                AcquisitionStrategy("visual()", lambda: visual_fn()),
            ]
        )

    page_fn = _entry_point(page.handle)
    if page_fn is not None:
        strategies.extend(
            [
                AcquisitionStrategy("page(width, height)", lambda: page_fn(visual.name, width, height)),
                AcquisitionStrategy("page(dims)", lambda: page_fn(visual.name, dict(dims))),
            ]
        )

    return strategies


class ImageAcquirer:
    """Resolve one canonical image per visual, trying each strategy once."""

    def __init__(self, report: Any, *, fetcher: Optional[Fetcher] = None):
        self.report = report
        self.fetcher = fetcher
        self.attempts: List[AttemptRecord] = []

    def strategies_for(self, page: PageRef, visual: VisualRef, scale: float) -> List[AcquisitionStrategy]:
        width, height = target_pixel_size(visual, scale)
        return build_strategies(self.report, page, visual, width, height)

    async def acquire(self, page: PageRef, visual: VisualRef, scale: float) -> str:
        self.attempts = []
        strategies = self.strategies_for(page, visual, scale)
        if not strategies:
            raise CapabilityMissingError(CAPABILITY_MISSING_MESSAGE)

        last_error: Optional[BaseException] = None
        for strategy in strategies:
            try:
                result = strategy.call()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                last_error = exc
                self.attempts.append(AttemptRecord(strategy.label, error_message(exc)))
                continue

            image = await normalize(result, fetcher=self.fetcher)
            if image:
                self.attempts.append(AttemptRecord(strategy.label, None))
                return image
            self.attempts.append(AttemptRecord(strategy.label, "no image data"))

        reason = error_message(last_error) if last_error is not None else "no strategy returned image data"
        raise AcquisitionFailedError(f"Failed to export visual as image: {reason}", cause=last_error)
