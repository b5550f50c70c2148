from __future__ import annotations

import asyncio
import base64
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from pptx import Presentation  # noqa: E402

from visualdeck.credentials import AccessToken  # noqa: E402
from visualdeck.errors import (  # noqa: E402
    AcquisitionFailedError,
    DeckExportError,
    PreconditionError,
    SessionBusyError,
)
from visualdeck.manifest import ManifestReport  # noqa: E402
from visualdeck.selection import make_visual_key  # noqa: E402
from visualdeck.session import DeckOptions, ExportSession, sanitize_file_name  # noqa: E402
from visualdeck.settings import ExportSettings  # noqa: E402
from visualdeck.status import StatusLog  # noqa: E402

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

MANIFEST = {
    "report": {
        "pages": [
            {
                "name": "P1",
                "displayName": "Overview",
                "visuals": [
                    {"name": "a", "title": "Alpha", "width": 640, "height": 360, "image": PNG_B64},
                    {"name": "b", "image": PNG_B64},
                ],
            },
            {"name": "P2", "visuals": [{"name": "c", "type": "card", "image": PNG_B64}]},
        ]
    }
}


async def _no_sleep(_seconds: float) -> None:
    return None


def _session(**settings) -> ExportSession:
    return ExportSession(
        settings=ExportSettings(**settings),
        status=StatusLog(echo=False),
        fetcher=lambda url: b"",
        sleep=_no_sleep,
        clock=lambda: datetime(2024, 5, 6, 7, 8, 9),
    )


def _loaded_session() -> ExportSession:
    session = _session()

    async def setup() -> None:
        await session.embed(ManifestReport(MANIFEST))
        await session.load_hierarchy()

    asyncio.run(setup())
    return session


def test_embed_and_load_report_counts() -> None:
    session = _loaded_session()

    assert len(session.snapshot) == 2
    assert len(session.selection) == 3
    assert "Loaded 2 pages and 3 visuals." in session.status.messages("success")
    assert session.selection_label() == "Selected visuals: 0"


def test_load_before_embed_is_a_precondition_error() -> None:
    session = _session()

    with pytest.raises(PreconditionError):
        asyncio.run(session.load_hierarchy())

    assert session.status.messages("error") == ["Load pages + visuals failed: Embed a report first."]
    assert session.busy is False


def test_generate_without_selection_is_rejected(tmp_path: Path) -> None:
    session = _loaded_session()

    with pytest.raises(PreconditionError) as exc:
        asyncio.run(session.generate_deck(DeckOptions(), tmp_path))

    assert "Select at least one visual" in str(exc.value)
    assert list(tmp_path.iterdir()) == []


def test_generate_writes_deck_named_after_title(tmp_path: Path) -> None:
    session = _loaded_session()
    session.toggle(make_visual_key("P2", "c"), True)
    session.toggle_page("P1", True)

    saved = asyncio.run(session.generate_deck(DeckOptions(title="Q2 Review!", layout="LAYOUT_16x9"), tmp_path))

    assert saved.name == "Q2-Review-20240506-070809.pptx"
    prs = Presentation(str(saved))
    assert len(prs.slides) == 3
    assert prs.core_properties.title == "Q2 Review!"
    assert "Deck generated: Q2-Review-20240506-070809.pptx" in session.status.messages("success")


def test_blank_title_uses_default_prefix(tmp_path: Path) -> None:
    session = _loaded_session()
    session.select_all()

    saved = asyncio.run(session.generate_deck(DeckOptions(title="   "), tmp_path))

    assert saved.name.startswith("powerbi-export-")
    assert Presentation(str(saved)).core_properties.title == "Power BI Deck"


def test_selection_changes_rejected_while_operation_runs() -> None:
    session = _loaded_session()
    session.running = "Generate PPTX"

    with pytest.raises(SessionBusyError) as exc:
        session.toggle(make_visual_key("P1", "a"), True)

    assert exc.value.running == "Generate PPTX"
    assert session.selection.count_selected() == 0
    assert "Another operation is running. Please wait." in session.status.messages()


def test_second_operation_is_rejected_not_queued() -> None:
    class SlowReport(ManifestReport):
        def __init__(self) -> None:
            super().__init__(MANIFEST)
            self.release = asyncio.Event()

        async def wait_until_loaded(self) -> None:
            await self.release.wait()

    session = _session()

    async def scenario():
        report = SlowReport()
        first = asyncio.create_task(session.embed(report))
        await asyncio.sleep(0)
        with pytest.raises(SessionBusyError):
            await session.load_hierarchy()
        report.release.set()
        await first
        return report

    report = asyncio.run(scenario())
    assert session.report is report
    assert session.busy is False


def test_embed_times_out_when_report_never_loads() -> None:
    class NeverLoads(ManifestReport):
        async def wait_until_loaded(self) -> None:
            await asyncio.sleep(3600)

    session = _session(load_timeout=0.01)

    with pytest.raises(DeckExportError) as exc:
        asyncio.run(session.embed(NeverLoads(MANIFEST)))

    assert 'Timed out waiting for report event "loaded".' in str(exc.value)
    assert session.report is None
    assert session.busy is False


def test_thumbnails_are_written_with_gallery(tmp_path: Path) -> None:
    session = _loaded_session()
    session.toggle_page("P1", True)

    written = asyncio.run(session.export_thumbnails(tmp_path, gallery=True))

    assert [p.name for p in written] == ["p1-a.png", "p1-b.png"]
    gallery = (tmp_path / "index.html").read_text(encoding="utf-8")
    assert "Overview / Alpha" in gallery
    assert session.report.active_page == "P1"


def test_sanitize_file_name() -> None:
    assert sanitize_file_name("  Sales / Q1 ") == "Sales-Q1"
    assert sanitize_file_name("***") == ""


def _run_session(manifest: dict, **kwargs) -> ExportSession:
    session = ExportSession(
        settings=kwargs.pop("settings", ExportSettings()),
        status=StatusLog(echo=False),
        sleep=_no_sleep,
        clock=lambda: datetime(2024, 5, 6, 7, 8, 9),
        **kwargs,
    )

    async def setup() -> None:
        await session.embed(ManifestReport(manifest))
        await session.load_hierarchy()

    asyncio.run(setup())
    return session


def test_failed_visual_mid_run_writes_no_deck(tmp_path: Path) -> None:
    manifest = {
        "report": {
            "pages": [
                {"name": "P1", "visuals": [{"name": "a", "image": PNG_B64}]},
                {"name": "P2", "visuals": [{"name": "c", "title": "Broken", "image": "not an image!"}]},
            ]
        }
    }
    session = _run_session(manifest, fetcher=lambda url: b"")
    session.select_all()

    with pytest.raises(AcquisitionFailedError):
        asyncio.run(session.generate_deck(DeckOptions(title="Partial"), tmp_path))

    assert list(tmp_path.glob("**/*.pptx")) == []
    assert session.busy is False
    assert "Exporting 1/2: a" in session.status.messages()
    assert session.status.messages("error")[-1].startswith("Generate PPTX failed:")


def test_thumbnails_with_colliding_names_get_distinct_files(tmp_path: Path) -> None:
    manifest = {
        "report": {
            "pages": [
                {
                    "name": "P1",
                    "visuals": [
                        {"name": "sales_q1", "title": "Sales (underscore)", "image": PNG_B64},
                        {"name": "Sales-Q1", "title": "Sales (dash)", "image": PNG_B64},
                    ],
                }
            ]
        }
    }
    session = _run_session(manifest, fetcher=lambda url: b"")
    session.select_all()

    written = asyncio.run(session.export_thumbnails(tmp_path, gallery=True))

    assert written[0].name == "p1-sales-q1.png"
    assert written[1].name.startswith("p1-sales-q1-") and written[1].name.endswith(".png")
    assert len(set(written)) == 2
    assert all(path.is_file() for path in written)
    gallery = (tmp_path / "index.html").read_text(encoding="utf-8")
    assert written[0].name in gallery and written[1].name in gallery


class _RecordingHttp:
    def __init__(self) -> None:
        self.headers = []
        self.closed = False

    def get(self, url, headers=None, timeout=None):
        self.headers.append(dict(headers or {}))
        return SimpleNamespace(
            content=base64.b64decode(PNG_B64),
            headers={"Content-Type": "image/png"},
            raise_for_status=lambda: None,
        )

    def close(self) -> None:
        self.closed = True


def test_expired_token_is_refreshed_before_image_download(tmp_path: Path) -> None:
    manifest = {"report": {"pages": [{"name": "P1", "visuals": [{"name": "a", "image": "https://example.test/a.png"}]}]}}
    expired = AccessToken("old", datetime(2000, 1, 1, tzinfo=timezone.utc))
    requested = []

    def refresh(profile, scopes):
        requested.append((profile.id, scopes))
        return AccessToken("fresh")

    session = _run_session(
        manifest,
        settings=ExportSettings(access_token=expired, cloud="gcc", scopes="scope-a scope-b"),
        token_refresher=refresh,
    )
    http = _RecordingHttp()
    session.fetcher.session = http
    session.select_all()

    saved = asyncio.run(session.generate_deck(DeckOptions(), tmp_path))
    session.close()

    assert saved.is_file()
    assert http.headers[0]["Authorization"] == "Bearer fresh"
    assert requested == [("gcc", ["scope-a", "scope-b"])]
    assert http.closed is True
