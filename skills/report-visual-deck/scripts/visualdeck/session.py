"""Export session: owns the embedded report, its hierarchy and the selection.

Only one top-level operation (embed, load, thumbnails, deck) runs at a time;
a second request while one is running is rejected, not queued. Failures are
reported to the status log and re-raised, and the session is always left
idle afterwards.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple, TypeVar

from .acquisition import ImageAcquirer
from .builder import DeckBuilder, PptxDeckBuilder
from .codec import Fetcher, HttpImageFetcher
from .credentials import Refresher, TokenProvider
from .errors import DeckExportError, PreconditionError, SessionBusyError, error_message
from .geometry import clamp_number, resolve_layout_name
from .hierarchy import load_snapshot, maybe_await
from .models import HierarchySnapshot, PageRef, VisualRef
from .selection import SelectionIndex
from .sequencer import DEFAULT_DECK_TITLE, DeckComposer, PageActivator
from .settings import DEFAULT_SCALE, MAX_SCALE, MIN_SCALE, ExportSettings
from .status import StatusLog
from .thumbnails import write_gallery, write_thumbnail

T = TypeVar("T")

DEFAULT_FILE_PREFIX = "powerbi-export"


@dataclass(frozen=True)
class DeckOptions:
    title: str = DEFAULT_DECK_TITLE
    layout: str = "LAYOUT_WIDE"
    scale: float = DEFAULT_SCALE
    include_page_name: bool = False


def sanitize_file_name(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9\-_]+", "-", value or "").strip("-")


def timestamp_slug(now: datetime) -> str:
    return now.strftime("%Y%m%d-%H%M%S")


class ExportSession:
    def __init__(
        self,
        *,
        settings: Optional[ExportSettings] = None,
        status: Optional[StatusLog] = None,
        fetcher: Optional[Fetcher] = None,
        token_refresher: Optional[Refresher] = None,
        builder_factory: Callable[[], DeckBuilder] = PptxDeckBuilder,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or ExportSettings()
        self.status = status or StatusLog()
        self.tokens = TokenProvider(
            self.settings.access_token,
            refresh=token_refresher,
            cloud=self.settings.cloud,
            scopes=self.settings.scopes,
        )
        self._owns_fetcher = fetcher is None
        if fetcher is None:
            fetcher = HttpImageFetcher(timeout=self.settings.http_timeout, access_token=self.tokens)
        self.fetcher = fetcher
        self.builder_factory = builder_factory
        self._sleep = sleep
        self._clock = clock

        self.report: Any = None
        self.selection = SelectionIndex()
        self.running: Optional[str] = None

    # -- state -----------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self.running is not None

    @property
    def snapshot(self) -> HierarchySnapshot:
        return self.selection.snapshot

    def _ensure_idle(self, requested: str) -> None:
        if self.running is not None:
            self.status("Another operation is running. Please wait.")
            raise SessionBusyError(self.running, requested)

    async def run_action(self, label: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        self._ensure_idle(label)
        self.running = label
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            self.status(f"{label} failed: {error_message(exc)}", "error")
            raise
        finally:
            self.running = None

    def _reset_selection_state(self) -> None:
        self.selection = SelectionIndex()

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    # -- selection (rejected while an operation runs) --------------------

    def toggle(self, key: str, included: bool) -> bool:
        self._ensure_idle("Toggle visual")
        return self.selection.toggle(key, included)

    def toggle_page(self, page_name: str, included: bool) -> int:
        self._ensure_idle("Toggle page")
        return self.selection.toggle_page(page_name, included)

    def select_all(self) -> int:
        self._ensure_idle("Select all")
        self.selection.select_all()
        return self.selection.count_selected()

    def clear_selection(self) -> None:
        self._ensure_idle("Clear selection")
        self.selection.clear()

    def selection_label(self) -> str:
        return f"Selected visuals: {self.selection.count_selected()}"

    # -- top-level operations --------------------------------------------

    async def embed(self, report: Any, *, starting_page: Optional[str] = None) -> None:
        await self.run_action("Embed report", self._embed, report, starting_page)

    async def load_hierarchy(self) -> HierarchySnapshot:
        return await self.run_action("Load pages + visuals", self._load_hierarchy)

    async def export_thumbnails(
        self, outdir: Path, *, scale: Optional[float] = None, gallery: bool = False
    ) -> List[Path]:
        return await self.run_action("Load thumbnails", self._export_thumbnails, Path(outdir), scale, gallery)

    async def generate_deck(self, options: DeckOptions, output_dir: Path) -> Path:
        return await self.run_action("Generate PPTX", self._generate_deck, options, Path(output_dir))

    async def _embed(self, report: Any, starting_page: Optional[str]) -> None:
        self._reset_selection_state()
        self.report = None

        wait_loaded = getattr(report, "wait_until_loaded", None)
        if callable(wait_loaded):
            try:
                await asyncio.wait_for(maybe_await(wait_loaded()), timeout=self.settings.load_timeout)
            except asyncio.TimeoutError as exc:
                raise DeckExportError('Timed out waiting for report event "loaded".') from exc

        self.report = report
        if starting_page:
            await maybe_await(report.set_page(starting_page))
        self.status("Report embedded successfully.", "success")

    async def _load_hierarchy(self) -> HierarchySnapshot:
        if self.report is None:
            raise PreconditionError("Embed a report first.")

        snapshot = await load_snapshot(self.report)
        self.selection.rebuild(snapshot)
        self.status(f"Loaded {len(snapshot)} pages and {len(self.selection)} visuals.", "success")
        return snapshot

    def _require_selection(self) -> List[Tuple[PageRef, VisualRef]]:
        if self.report is None:
            raise PreconditionError("Embed and load visuals first.")
        selected = self.selection.collect_ordered()
        if not selected:
            raise PreconditionError("Select at least one visual.")
        return selected

    def _scale(self, value: Optional[float]) -> float:
        return clamp_number(value if value is not None else self.settings.image_scale, MIN_SCALE, MAX_SCALE, DEFAULT_SCALE)

    async def _export_thumbnails(self, outdir: Path, scale: Optional[float], gallery: bool) -> List[Path]:
        selected = self._require_selection()
        thumb_scale = max(1.0, self._scale(scale) - 0.5)
        acquirer = ImageAcquirer(self.report, fetcher=self.fetcher)
        pages = PageActivator(self.report, settle_delay=self.settings.settle_delay, sleep=self._sleep)

        written: List[Path] = []
        taken: Set[Path] = set()
        labels: List[Tuple[str, Path]] = []
        for index, (page, visual) in enumerate(selected, start=1):
            self.status(f"Thumbnail {index}/{len(selected)}: {visual.label}")
            await pages.ensure(page)
            image = await acquirer.acquire(page, visual, thumb_scale)
            path = write_thumbnail(outdir, page, visual, image, taken=taken)
            taken.add(path)
            written.append(path)
            labels.append((f"{page.label} / {visual.label}", path))

        if gallery:
            write_gallery(outdir, labels)
        self.status(f"Loaded {len(written)} thumbnails.", "success")
        return written

    async def _generate_deck(self, options: DeckOptions, output_dir: Path) -> Path:
        selected = self._require_selection()
        builder = self.builder_factory()
        composer = DeckComposer(
            self.report,
            ImageAcquirer(self.report, fetcher=self.fetcher),
            builder,
            settle_delay=self.settings.settle_delay,
            include_page_name=options.include_page_name,
            status=self.status,
            sleep=self._sleep,
        )
        title = (options.title or "").strip()
        await composer.compose(
            selected,
            self._scale(options.scale),
            resolve_layout_name(options.layout),
            title=title or DEFAULT_DECK_TITLE,
        )

        prefix = sanitize_file_name(title) or DEFAULT_FILE_PREFIX
        file_name = f"{prefix}-{timestamp_slug(self._clock())}.pptx"
        saved = builder.save(output_dir / file_name)
        self.status(f"Deck generated: {file_name}", "success")
        return saved
