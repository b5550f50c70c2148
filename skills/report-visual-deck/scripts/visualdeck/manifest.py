"""Static report described by a JSON manifest.

Example::

    {
      "report": {
        "name": "Sales",
        "pages": [
          {
            "name": "ReportSection1",
            "displayName": "Overview",
            "visuals": [
              {"name": "revenue", "title": "Revenue", "type": "barChart",
               "width": 640, "height": 360, "image": "images/revenue.png"}
            ]
          }
        ]
      }
    }

``image`` may be a path (relative to the manifest), an http(s) URL, a data
URL or a bare base64 string. Exports only work for the active page, like a
live report.
"""

from __future__ import annotations

import json
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .codec import IMAGE_DATA_PREFIX, is_http_url
from .errors import ConfigValidationError
from .models import ImageBlob


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _check_visual(visual: Any, prefix: str, issues: list[str]) -> Optional[str]:
    if not isinstance(visual, dict):
        issues.append(f"{prefix} must be an object")
        return None

    name = visual.get("name")
    if not _is_non_empty_str(name):
        issues.append(f"{prefix}.name is required and must be a non-empty string")
        name = None

    for text_field in ("title", "type"):
        if text_field in visual and not isinstance(visual.get(text_field), str):
            issues.append(f"{prefix}.{text_field} must be a string when provided")

    for size_field in ("width", "height"):
        if visual.get(size_field) is not None and not _is_positive_number(visual.get(size_field)):
            issues.append(f"{prefix}.{size_field} must be a positive number when provided")

    if "image" in visual and not _is_non_empty_str(visual.get("image")):
        issues.append(f"{prefix}.image must be a non-empty string when provided")

    return name


def _check_page(page: Any, prefix: str, issues: list[str]) -> Optional[str]:
    if not isinstance(page, dict):
        issues.append(f"{prefix} must be an object")
        return None

    name = page.get("name")
    if not _is_non_empty_str(name):
        issues.append(f"{prefix}.name is required and must be a non-empty string")
        name = None

    if "displayName" in page and not isinstance(page.get("displayName"), str):
        issues.append(f"{prefix}.displayName must be a string when provided")

    visuals = page.get("visuals", [])
    if not isinstance(visuals, list):
        issues.append(f"{prefix}.visuals must be a list when provided")
        return name

    seen: set[str] = set()
    for idx, visual in enumerate(visuals):
        visual_name = _check_visual(visual, f"{prefix}.visuals[{idx}]", issues)
        if visual_name is None:
            continue
        if visual_name in seen:
            issues.append(f"{prefix}.visuals[{idx}].name '{visual_name}' is duplicated on this page")
        seen.add(visual_name)
    return name


def validate_manifest(manifest: Any) -> Tuple[Dict[str, Any], bool]:
    """Validate a manifest dict and return (manifest, wrapped)."""
    if not isinstance(manifest, dict):
        raise ConfigValidationError(["Root JSON value must be an object"])

    wrapped = "report" in manifest
    report = manifest.get("report") if wrapped else manifest
    if not isinstance(report, dict):
        raise ConfigValidationError(["'report' must be an object"])

    prefix = "report" if wrapped else "root"
    issues: list[str] = []

    if "name" in report and not isinstance(report.get("name"), str):
        issues.append(f"{prefix}.name must be a string when provided")

    pages = report.get("pages")
    if not isinstance(pages, list):
        issues.append(f"{prefix}.pages is required and must be a list")
    elif not pages:
        issues.append(f"{prefix}.pages must contain at least one page")
    else:
        seen: set[str] = set()
        for idx, page in enumerate(pages):
            page_name = _check_page(page, f"{prefix}.pages[{idx}]", issues)
            if page_name is None:
                continue
            if page_name in seen:
                issues.append(f"{prefix}.pages[{idx}].name '{page_name}' is duplicated")
            seen.add(page_name)

    if issues:
        raise ConfigValidationError(issues)

    return manifest, wrapped


def validate_manifest_file(manifest_path: Path) -> Tuple[Dict[str, Any], bool]:
    """Load and validate a JSON manifest file."""
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigValidationError([f"Manifest file not found: {manifest_path}"]) from exc

    try:
        data: Dict[str, Any] = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigValidationError([f"Invalid JSON at line {exc.lineno}, column {exc.colno}: {exc.msg}"]) from exc

    return validate_manifest(data)


@dataclass(frozen=True)
class VisualLayout:
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class ManifestVisual:
    name: str
    title: str = ""
    type: str = ""
    layout: VisualLayout = field(default_factory=VisualLayout)
    image: Optional[str] = None


@dataclass
class ManifestPage:
    name: str
    display_name: str = ""
    visuals: List[ManifestVisual] = field(default_factory=list)

    def get_visuals(self) -> List[ManifestVisual]:
        return list(self.visuals)


class ManifestReport:
    """``ReportSource`` whose visuals are images listed in a manifest."""

    def __init__(self, manifest: Dict[str, Any], *, base_dir: Optional[Path] = None):
        validated, wrapped = validate_manifest(manifest)
        report = validated["report"] if wrapped else validated
        self.name = str(report.get("name") or "")
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.pages = [self._page_from(page) for page in report["pages"]]
        self.active_page: Optional[str] = None

    @classmethod
    def from_file(cls, manifest_path: Path) -> "ManifestReport":
        path = Path(manifest_path).resolve()
        manifest, _ = validate_manifest_file(path)
        return cls(manifest, base_dir=path.parent)

    @staticmethod
    def _page_from(page: Dict[str, Any]) -> ManifestPage:
        visuals = [
            ManifestVisual(
                name=str(v["name"]),
                title=str(v.get("title") or ""),
                type=str(v.get("type") or ""),
                layout=VisualLayout(v.get("width"), v.get("height")),
                image=v.get("image"),
            )
            for v in page.get("visuals", [])
        ]
        return ManifestPage(name=str(page["name"]), display_name=str(page.get("displayName") or ""), visuals=visuals)

    def get_pages(self) -> List[ManifestPage]:
        return list(self.pages)

    def set_page(self, name: str) -> None:
        if not any(page.name == name for page in self.pages):
            raise ValueError(f"Unknown page: {name}")
        self.active_page = name

    def _find_visual(self, page_name: str, visual_name: str) -> ManifestVisual:
        for page in self.pages:
            if page.name != page_name:
                continue
            for visual in page.visuals:
                if visual.name == visual_name:
                    return visual
        raise KeyError(f"Unknown visual {visual_name!r} on page {page_name!r}")

    def export_visual_as_image(self, page_name: Any, visual_name: Optional[str] = None, *_size: Any) -> Any:
        if isinstance(page_name, dict):
            request = page_name
            page_name, visual_name = request.get("pageName"), request.get("visualName")
        if page_name != self.active_page:
            raise RuntimeError(f"Page {page_name!r} is not the active page")

        visual = self._find_visual(str(page_name), str(visual_name))
        image = (visual.image or "").strip()
        if not image:
            raise ValueError(f"Visual {visual.name!r} has no image in the manifest")

        if is_http_url(image) or image.startswith(IMAGE_DATA_PREFIX):
            return image

        path = Path(image).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        if os.path.isfile(path):
            content_type, _ = mimetypes.guess_type(path.name)
            return ImageBlob(path.read_bytes(), content_type)

        # Not a file on disk: hand the string over as a bare base64 payload.
        return image
