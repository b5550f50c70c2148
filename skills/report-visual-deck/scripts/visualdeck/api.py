"""Public API helpers for programmatic deck export."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import ConfigValidationError
from .manifest import ManifestReport
from .selection import KEY_SEPARATOR, make_visual_key
from .session import DeckOptions, ExportSession
from .settings import ExportSettings
from .status import StatusLog


def split_visual_ref(value: str) -> tuple[str, str]:
    """Split ``PAGE::VISUAL`` (plain names, not percent-encoded) at the first separator."""
    page_name, sep, visual_name = str(value).partition(KEY_SEPARATOR)
    if not sep or not page_name.strip() or not visual_name.strip():
        raise ConfigValidationError([f"Visual reference must look like PAGE{KEY_SEPARATOR}VISUAL: {value!r}"])
    return page_name.strip(), visual_name.strip()


def apply_selection(
    session: ExportSession,
    *,
    pages: Sequence[str] = (),
    visuals: Sequence[str] = (),
) -> int:
    """Select whole pages and/or single visuals; select everything when both are empty.

    Pages match by name or display name. Returns the number of selected visuals.
    """
    if not pages and not visuals:
        return session.select_all()

    issues: List[str] = []
    session.clear_selection()
    groups = list(session.snapshot)

    for wanted in pages:
        match = next((g.page for g in groups if wanted in (g.page.name, g.page.display_name)), None)
        if match is None:
            issues.append(f"Unknown page: {wanted}")
            continue
        session.toggle_page(match.name, True)

    for raw in visuals:
        try:
            page_name, visual_name = split_visual_ref(raw)
        except ConfigValidationError as e:
            issues.extend(e.issues)
            continue
        page = next((g.page for g in groups if page_name in (g.page.name, g.page.display_name)), None)
        key = make_visual_key(page.name if page else page_name, visual_name)
        if not session.toggle(key, True):
            issues.append(f"Unknown visual: {raw}")

    if issues:
        raise ConfigValidationError(issues)
    return session.selection.count_selected()


async def export_deck(
    report: Any,
    *,
    output_dir: Path,
    options: Optional[DeckOptions] = None,
    pages: Sequence[str] = (),
    visuals: Sequence[str] = (),
    starting_page: Optional[str] = None,
    thumbnails_dir: Optional[Path] = None,
    gallery: bool = False,
    settings: Optional[ExportSettings] = None,
    status: Optional[StatusLog] = None,
    session: Optional[ExportSession] = None,
) -> Path:
    """Embed ``report``, load its hierarchy, select visuals and write a PPTX deck."""
    owns_session = session is None
    session = session or ExportSession(settings=settings, status=status)
    options = options or DeckOptions(layout=session.settings.layout, scale=session.settings.image_scale)

    try:
        await session.embed(report, starting_page=starting_page)
        await session.load_hierarchy()
        apply_selection(session, pages=pages, visuals=visuals)
        session.status(session.selection_label())

        if thumbnails_dir is not None:
            await session.export_thumbnails(Path(thumbnails_dir), scale=options.scale, gallery=gallery)
        return await session.generate_deck(options, Path(output_dir))
    finally:
        if owns_session:
            session.close()


def generate_deck_from_manifest(
    *,
    manifest_path: Path,
    output_dir: Path,
    options: Optional[DeckOptions] = None,
    pages: Iterable[str] = (),
    visuals: Iterable[str] = (),
    settings: Optional[ExportSettings] = None,
    status: Optional[StatusLog] = None,
) -> Path:
    """Generate a deck from a validated manifest file."""
    report = ManifestReport.from_file(Path(manifest_path))
    return asyncio.run(
        export_deck(
            report,
            output_dir=Path(output_dir),
            options=options,
            pages=list(pages),
            visuals=list(visuals),
            settings=settings,
            status=status,
        )
    )


def write_manifest(manifest: Dict[str, Any], path: Path) -> Path:
    """Write a JSON manifest to disk and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path
