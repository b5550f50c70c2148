"""Write exported visual images to disk, with an optional HTML gallery."""

from __future__ import annotations

import hashlib
import html
import re
from pathlib import Path
from typing import AbstractSet, Sequence, Tuple

from .codec import decode_data_url, image_extension
from .models import PageRef, VisualRef
from .selection import make_visual_key


def slugify(text: str, *, fallback: str = "visual") -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]+", "-", (text or "").strip()).strip("-").lower()
    return cleaned or fallback


def thumbnail_path(
    outdir: Path, page: PageRef, visual: VisualRef, mime: str, *, taken: AbstractSet[Path] = frozenset()
) -> Path:
    """Readable ``<page>-<visual>.<ext>`` name; a key digest is appended when that name is taken."""
    stem = f"{slugify(page.name, fallback='page')}-{slugify(visual.name)}"
    ext = image_extension(mime)
    path = outdir / f"{stem}.{ext}"
    if path not in taken:
        return path
    digest = hashlib.sha1(make_visual_key(page.name, visual.name).encode("utf-8")).hexdigest()[:8]
    return outdir / f"{stem}-{digest}.{ext}"


def write_thumbnail(
    outdir: Path, page: PageRef, visual: VisualRef, image: str, *, taken: AbstractSet[Path] = frozenset()
) -> Path:
    mime, payload = decode_data_url(image)
    outdir.mkdir(parents=True, exist_ok=True)
    path = thumbnail_path(outdir, page, visual, mime, taken=taken)
    path.write_bytes(payload)
    return path


def write_gallery(outdir: Path, items: Sequence[Tuple[str, Path]]) -> Path:
    """Write ``index.html`` listing ``(label, image_path)`` pairs in order."""
    gallery_path = outdir / "index.html"
    rows = "\n".join(
        [
            f'<div class="visual"><div class="label">{html.escape(label)}</div>'
            f'<img alt="{html.escape(label, quote=True)}" src="{html.escape(img.name, quote=True)}" /></div>'
            for label, img in items
        ]
    )
    gallery_path.write_text(
        f"""<!doctype html>
<meta charset="utf-8" />
<title>Visual Thumbnails</title>
<style>
  body {{ font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif; margin: 24px; }}
  .grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(320px, 1fr)); gap: 18px; }}
  .visual {{ border: 1px solid #ddd; border-radius: 10px; padding: 12px; background: #fff; }}
  .label {{ font-size: 12px; color: #444; margin-bottom: 8px; }}
  img {{ width: 100%; height: auto; border-radius: 6px; }}
</style>
<h1>Visual Thumbnails</h1>
<div class="grid">
{rows}
</div>
""",
        encoding="utf-8",
    )
    return gallery_path
