"""Offline sample report with Pillow-drawn placeholder visuals.

Useful for trying the exporter without a Power BI tenant. Each visual
exports through its own handle and wraps the PNG the way newer report SDKs
do (``{"body": {"imageData": ...}}``).
"""

from __future__ import annotations

import io
import random
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .codec import encode_binary

RGB = Tuple[int, int, int]

PALETTES: List[Dict[str, RGB]] = [
    {"bg": (255, 255, 255), "accent": (2, 132, 199), "text": (15, 23, 42)},
    {"bg": (248, 250, 252), "accent": (22, 163, 74), "text": (30, 41, 59)},
    {"bg": (255, 251, 235), "accent": (217, 119, 6), "text": (68, 64, 60)},
    {"bg": (245, 243, 255), "accent": (124, 58, 237), "text": (46, 16, 101)},
]

SAMPLE_PAGES: List[Dict[str, Any]] = [
    {
        "name": "ReportSection1",
        "displayName": "Overview",
        "visuals": [
            {"name": "revenueByRegion", "title": "Revenue by Region", "type": "clusteredColumnChart", "width": 640, "height": 360},
            {"name": "totalRevenue", "title": "Total Revenue", "type": "card", "width": 320, "height": 180},
        ],
    },
    {
        "name": "ReportSection2",
        "displayName": "Trends",
        "visuals": [
            {"name": "monthlyOrders", "title": "Monthly Orders", "type": "lineChart", "width": 800, "height": 360},
            {"name": "channelMix", "title": "Channel Mix", "type": "pieChart", "width": 400, "height": 400},
        ],
    },
]


def pick_palette(seed_text: str) -> Dict[str, RGB]:
    return PALETTES[zlib.crc32(seed_text.encode("utf-8")) % len(PALETTES)]


def try_font(size: int):
    from PIL import ImageFont

    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    ]
    for path in candidates:
        try:
            if Path(path).exists():
                return ImageFont.truetype(path, size=size)
        except OSError:
            continue
    return ImageFont.load_default()


def _chart_family(kind: str) -> str:
    kind = (kind or "").lower()
    if "line" in kind or "area" in kind:
        return "line"
    if "pie" in kind or "donut" in kind or "doughnut" in kind:
        return "pie"
    if "card" in kind or "kpi" in kind:
        return "card"
    return "bar"


def _mix(c1: RGB, c2: RGB, t: float) -> RGB:
    t = max(0.0, min(1.0, t))
    return tuple(int(c1[i] * (1 - t) + c2[i] * t) for i in range(3))  # type: ignore[return-value]


def render_placeholder(name: str, title: str, kind: str, width: int, height: int) -> bytes:
    """Draw a deterministic chart-like PNG for one visual."""
    try:
        from PIL import Image, ImageDraw
    except Exception as e:
        raise RuntimeError("Pillow is required for the sample report. Install the package dependencies") from e

    w_px, h_px = max(int(width), 64), max(int(height), 64)
    palette = pick_palette(name)
    rng = random.Random(zlib.crc32(f"{name}:{kind}".encode("utf-8")))
    bg, accent, text = palette["bg"], palette["accent"], palette["text"]

    img = Image.new("RGB", (w_px, h_px), bg)
    draw = ImageDraw.Draw(img)
    title_font = try_font(max(12, int(min(w_px, h_px) * 0.07)))

    pad = int(min(w_px, h_px) * 0.08)
    draw.text((pad, pad // 2), title or name, fill=text, font=title_font)
    top = pad + int(min(w_px, h_px) * 0.1)
    left, right, bottom = pad, w_px - pad, h_px - pad
    family = _chart_family(kind)

    if family == "bar":
        count = rng.randint(4, 7)
        slot = (right - left) / count
        for i in range(count):
            bar_h = (bottom - top) * rng.uniform(0.25, 0.95)
            x0 = left + i * slot + slot * 0.15
            draw.rectangle([x0, bottom - bar_h, x0 + slot * 0.7, bottom], fill=_mix(accent, bg, i * 0.08))
        draw.line([(left, bottom), (right, bottom)], fill=text, width=2)

    elif family == "line":
        count = rng.randint(8, 12)
        points = [
            (left + (right - left) * i / (count - 1), bottom - (bottom - top) * rng.uniform(0.15, 0.9))
            for i in range(count)
        ]
        for y in range(4):
            gy = top + (bottom - top) * y / 4
            draw.line([(left, gy), (right, gy)], fill=_mix(bg, text, 0.12), width=1)
        draw.line(points, fill=accent, width=max(2, h_px // 120))
        draw.line([(left, bottom), (right, bottom)], fill=text, width=2)

    elif family == "pie":
        size = min(right - left, bottom - top)
        cx, cy = (left + right) / 2, (top + bottom) / 2
        box = [cx - size / 2, cy - size / 2, cx + size / 2, cy + size / 2]
        weights = [rng.uniform(1, 4) for _ in range(rng.randint(3, 5))]
        start = -90.0
        for i, weight in enumerate(weights):
            sweep = 360.0 * weight / sum(weights)
            draw.pieslice(box, start, start + sweep, fill=_mix(accent, bg, i * 0.18), outline=bg)
            start += sweep

    else:
        value = f"{rng.randint(10, 999)}.{rng.randint(0, 9)}K"
        value_font = try_font(max(16, int(min(w_px, h_px) * 0.3)))
        bbox = draw.textbbox((0, 0), value, font=value_font)
        tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
        draw.text(((w_px - tw) / 2, top + (bottom - top - th) / 2), value, fill=accent, font=value_font)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@dataclass
class SampleVisual:
    name: str
    title: str
    type: str
    width: float
    height: float
    exports: int = 0

    def export_visual_as_image(self, width: Optional[int] = None, height: Optional[int] = None) -> Dict[str, Any]:
        self.exports += 1
        png = render_placeholder(self.name, self.title, self.type, int(width or self.width), int(height or self.height))
        return {"body": {"imageData": encode_binary(png, "image/png")}}


@dataclass
class SamplePage:
    name: str
    display_name: str
    visuals: List[SampleVisual] = field(default_factory=list)

    def get_visuals(self) -> List[SampleVisual]:
        return list(self.visuals)


class SampleReport:
    """Two pages of placeholder visuals; ``set_page`` tracks the active page."""

    def __init__(self, pages: Optional[List[Dict[str, Any]]] = None):
        self.pages = [
            SamplePage(
                name=page["name"],
                display_name=page.get("displayName", ""),
                visuals=[SampleVisual(v["name"], v["title"], v["type"], v["width"], v["height"]) for v in page["visuals"]],
            )
            for page in (pages or SAMPLE_PAGES)
        ]
        self.active_page: Optional[str] = None
        self.loaded = False

    async def wait_until_loaded(self) -> None:
        self.loaded = True

    def get_pages(self) -> List[SamplePage]:
        return list(self.pages)

    def set_page(self, name: str) -> None:
        if not any(page.name == name for page in self.pages):
            raise ValueError(f"Unknown page: {name}")
        self.active_page = name
