"""Slide builder: draw calls in inches on top of python-pptx."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Optional, Protocol, Tuple

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_AUTO_SHAPE_TYPE
from pptx.enum.text import MSO_AUTO_SIZE
from pptx.util import Inches, Pt

from .codec import decode_data_url
from .geometry import layout_dimensions, resolve_layout_name
from .models import Rect


class DeckBuilder(Protocol):
    """What the composer needs from a slide file writer."""

    def set_layout(self, name: str) -> Tuple[float, float]: ...

    def set_metadata(self, *, title: str, author: str, subject: str) -> None: ...

    def add_slide(self, *, background: Optional[str] = None) -> Any: ...

    def add_rect(self, slide: Any, rect: Rect, *, fill: str, line: str, line_pt: float = 1.0) -> None: ...

    def add_text(
        self,
        slide: Any,
        text: str,
        rect: Rect,
        *,
        font_face: str,
        color: str,
        size_pt: float,
        bold: bool = False,
        shrink: bool = False,
    ) -> None: ...

    def add_image(self, slide: Any, image: str, rect: Rect) -> None: ...

    def save(self, output_path: Path) -> Path: ...


def _rgb(value: str) -> RGBColor:
    return RGBColor.from_string(str(value).lstrip("#").upper())


class PptxDeckBuilder:
    """``DeckBuilder`` backed by a python-pptx ``Presentation``."""

    def __init__(self) -> None:
        self.prs = Presentation()
        self.layout_name = resolve_layout_name("")
        self.dimensions = layout_dimensions(self.layout_name)

    @property
    def slide_count(self) -> int:
        return len(self.prs.slides)

    def set_layout(self, name: str) -> Tuple[float, float]:
        self.layout_name = resolve_layout_name(name)
        self.dimensions = layout_dimensions(self.layout_name)
        width, height = self.dimensions
        self.prs.slide_width = Inches(width)
        self.prs.slide_height = Inches(height)
        return self.dimensions

    def set_metadata(self, *, title: str, author: str, subject: str) -> None:
        core = self.prs.core_properties
        core.title = title
        core.author = author
        core.subject = subject

    def _get_blank_layout(self):
        for layout in self.prs.slide_layouts:
            if str(getattr(layout, "name", "")).strip().lower() == "blank":
                return layout
        try:
            return self.prs.slide_layouts[6]
        except IndexError:
            return self.prs.slide_layouts[-1]

    def add_slide(self, *, background: Optional[str] = None) -> Any:
        slide = self.prs.slides.add_slide(self._get_blank_layout())
        if background:
            fill = slide.background.fill
            fill.solid()
            fill.fore_color.rgb = _rgb(background)
        return slide

    def add_rect(self, slide: Any, rect: Rect, *, fill: str, line: str, line_pt: float = 1.0) -> None:
        shape = slide.shapes.add_shape(
            MSO_AUTO_SHAPE_TYPE.RECTANGLE,
            Inches(rect.x),
            Inches(rect.y),
            Inches(rect.w),
            Inches(rect.h),
        )
        shape.fill.solid()
        shape.fill.fore_color.rgb = _rgb(fill)
        shape.line.color.rgb = _rgb(line)
        shape.line.width = Pt(line_pt)
        shape.shadow.inherit = False

    def add_text(
        self,
        slide: Any,
        text: str,
        rect: Rect,
        *,
        font_face: str,
        color: str,
        size_pt: float,
        bold: bool = False,
        shrink: bool = False,
    ) -> None:
        box = slide.shapes.add_textbox(Inches(rect.x), Inches(rect.y), Inches(rect.w), Inches(rect.h))
        text_frame = box.text_frame
        text_frame.word_wrap = True
        text_frame.margin_top = 0
        text_frame.margin_bottom = 0
        text_frame.text = text
        if shrink:
            text_frame.auto_size = MSO_AUTO_SIZE.TEXT_TO_FIT_SHAPE
        font = text_frame.paragraphs[0].font
        font.name = font_face
        font.size = Pt(size_pt)
        font.bold = bold
        font.color.rgb = _rgb(color)

    def add_image(self, slide: Any, image: str, rect: Rect) -> None:
        _mime, payload = decode_data_url(image)
        slide.shapes.add_picture(
            io.BytesIO(payload),
            Inches(rect.x),
            Inches(rect.y),
            width=Inches(rect.w),
            height=Inches(rect.h),
        )

    def save(self, output_path: Path) -> Path:
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        self.prs.save(str(output))
        return output
