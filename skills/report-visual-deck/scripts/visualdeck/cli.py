"""CLI orchestration for the report visual deck exporter."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import traceback
from pathlib import Path
from typing import Any

from .api import export_deck
from .errors import ConfigValidationError
from .geometry import LAYOUT_PRESETS, describe_dimensions
from .hierarchy import load_snapshot
from .manifest import ManifestReport
from .sample import SampleReport
from .selection import KEY_SEPARATOR
from .session import DeckOptions
from .sequencer import DEFAULT_DECK_TITLE
from .settings import ExportSettings, load_default_env_files
from .status import StatusLog


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export report visuals into a PPTX deck, one visual per slide")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--manifest", default=None, help="Path to a JSON report manifest")
    source.add_argument("--sample", action="store_true", help="Use the built-in sample report with placeholder visuals")
    parser.add_argument("--output-dir", default=".", help="Directory for the generated PPTX (default: current directory)")
    parser.add_argument("--title", default=DEFAULT_DECK_TITLE, help=f'Deck title (default: "{DEFAULT_DECK_TITLE}")')
    parser.add_argument(
        "--layout",
        default=None,
        choices=sorted(LAYOUT_PRESETS),
        help="Slide layout (default: VISUALDECK_LAYOUT or LAYOUT_WIDE)",
    )
    parser.add_argument("--scale", type=float, default=None, help="Image scale 1-4 (default: VISUALDECK_IMAGE_SCALE or 2)")
    parser.add_argument("--include-page-name", action="store_true", help='Prefix slide titles with "<page> - "')
    parser.add_argument("--page", action="append", default=[], help="Select every visual of a page (repeatable)")
    parser.add_argument(
        "--visual",
        action="append",
        default=[],
        help=f"Select one visual as PAGE{KEY_SEPARATOR}VISUAL (repeatable; default: select all)",
    )
    parser.add_argument("--starting-page", default=None, help="Page to activate right after embedding")
    parser.add_argument("--thumbnails-dir", default=None, help="Optional directory to write visual thumbnails")
    parser.add_argument("--gallery", action="store_true", help="Also write an index.html gallery of thumbnails")
    parser.add_argument(
        "--settle-delay-ms",
        type=int,
        default=None,
        help="Wait after each page switch (default: VISUALDECK_SETTLE_DELAY_MS or 300)",
    )
    parser.add_argument("--env-file", default=None, help="Optional .env file loaded after the default ones")
    parser.add_argument("--list-visuals", action="store_true", help="Print pages and visuals of the report and exit")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show full traceback for unexpected errors",
    )
    return parser


def _load_report(args: argparse.Namespace) -> Any:
    if args.sample:
        return SampleReport()
    return ManifestReport.from_file(Path(args.manifest))


def _settings_from_args(args: argparse.Namespace) -> ExportSettings:
    load_default_env_files(explicit_env_file=args.env_file)
    settings = ExportSettings.from_env()
    if args.settle_delay_ms is not None:
        settings = dataclasses.replace(settings, settle_delay=max(0, args.settle_delay_ms) / 1000.0)
    return settings


async def _list_visuals(report: Any) -> None:
    snapshot = await load_snapshot(report)
    for group in snapshot:
        print(f"{group.page.name}\t{group.page.label}")
        for visual in group.visuals:
            ref = f"{group.page.name}{KEY_SEPARATOR}{visual.name}"
            print(f"  {ref}\t{visual.label}\t{visual.kind or 'visual'}\t{describe_dimensions(visual)}")


def run_cli() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        settings = _settings_from_args(args)
        report = _load_report(args)

        if args.list_visuals:
            asyncio.run(_list_visuals(report))
            return

        status = StatusLog()
        token = settings.access_token
        if token is not None and token.is_expiring():
            status("Access token is expired or about to expire; image downloads may fail.", "error")

        options = DeckOptions(
            title=args.title,
            layout=args.layout or settings.layout,
            scale=args.scale if args.scale is not None else settings.image_scale,
            include_page_name=args.include_page_name,
        )
        saved = asyncio.run(
            export_deck(
                report,
                output_dir=Path(args.output_dir).resolve(),
                options=options,
                pages=args.page,
                visuals=args.visual,
                starting_page=args.starting_page,
                thumbnails_dir=Path(args.thumbnails_dir).resolve() if args.thumbnails_dir else None,
                gallery=args.gallery,
                settings=settings,
                status=status,
            )
        )
        print(saved)
    except ConfigValidationError as e:
        raise SystemExit(str(e)) from e
    except Exception as e:
        if args.debug:
            traceback.print_exc()
        raise SystemExit(f"Deck export failed: {e}") from e
