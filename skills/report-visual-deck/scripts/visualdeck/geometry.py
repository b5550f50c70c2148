"""Slide layout math: presets, content regions and aspect-preserving fit."""

from __future__ import annotations

import math
from typing import Any, Dict, Tuple

from .models import Rect, VisualRef

DEFAULT_ASPECT_RATIO = 16 / 9
DEFAULT_LAYOUT = "LAYOUT_WIDE"

# Slide sizes in inches.
LAYOUT_PRESETS: Dict[str, Tuple[float, float]] = {
    "LAYOUT_WIDE": (13.333, 7.5),
    "LAYOUT_STANDARD": (10.0, 7.5),
    "LAYOUT_16x9": (10.0, 5.625),
    "LAYOUT_16x10": (10.0, 6.25),
}

SLIDE_MARGIN = 0.35
TITLE_BAND_HEIGHT = 0.9
FRAME_PADDING = 0.1


def layout_dimensions(name: str) -> Tuple[float, float]:
    return LAYOUT_PRESETS.get(str(name or "").strip(), LAYOUT_PRESETS[DEFAULT_LAYOUT])


def resolve_layout_name(name: str) -> str:
    value = str(name or "").strip()
    return value if value in LAYOUT_PRESETS else DEFAULT_LAYOUT


def content_region(dimensions: Tuple[float, float]) -> Rect:
    """Area below the title band where the visual image goes."""
    width, height = dimensions
    return Rect(
        x=SLIDE_MARGIN,
        y=TITLE_BAND_HEIGHT,
        w=max(0.0, width - SLIDE_MARGIN * 2),
        h=max(0.0, height - TITLE_BAND_HEIGHT - SLIDE_MARGIN),
    )


def fit_rect(bounds: Rect, aspect_ratio: float) -> Rect:
    """Largest rectangle of ``aspect_ratio`` that fits inside ``bounds``, centered on both axes."""
    width = bounds.w
    height = width / aspect_ratio

    if height > bounds.h:
        height = bounds.h
        width = height * aspect_ratio

    return Rect(
        x=bounds.x + (bounds.w - width) / 2,
        y=bounds.y + (bounds.h - height) / 2,
        w=width,
        h=height,
    )


def _positive(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number <= 0:
        return 0.0
    return number


def aspect_ratio_for(visual: VisualRef) -> float:
    width = _positive(visual.width)
    height = _positive(visual.height)
    if not width or not height:
        return DEFAULT_ASPECT_RATIO
    return width / height


def describe_dimensions(visual: VisualRef) -> str:
    width = _positive(visual.width)
    height = _positive(visual.height)
    if not width or not height:
        return "size unknown"
    return f"{round(width)}x{round(height)}"


def clamp_number(value: Any, minimum: float, maximum: float, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return min(maximum, max(minimum, number))
