from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "export_visual_deck.py"
SAMPLE_MANIFEST = Path(__file__).resolve().parents[1] / "assets" / "sample_manifest.json"


def _run(*args: str, cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        capture_output=True,
        text=True,
        cwd=str(cwd),
    )


def test_cli_shows_clean_validation_error(tmp_path: Path) -> None:
    bad_manifest = tmp_path / "bad.json"
    bad_manifest.write_text('{"report": {"pages": "oops"}}', encoding="utf-8")

    result = _run("--manifest", str(bad_manifest), "--output-dir", str(tmp_path), cwd=tmp_path)

    assert result.returncode == 1
    assert "Configuration validation failed" in result.stderr
    assert "Traceback" not in result.stderr


def test_cli_reports_unknown_visual_selection(tmp_path: Path) -> None:
    result = _run(
        "--manifest",
        str(SAMPLE_MANIFEST),
        "--visual",
        "ReportSection1::missing",
        "--output-dir",
        str(tmp_path),
        cwd=tmp_path,
    )

    assert result.returncode == 1
    assert "Unknown visual: ReportSection1::missing" in result.stderr
    assert not list(tmp_path.glob("*.pptx"))


def test_cli_wraps_export_failures_without_traceback(tmp_path: Path) -> None:
    manifest = tmp_path / "report.json"
    manifest.write_text(
        json.dumps({"report": {"pages": [{"name": "P1", "visuals": [{"name": "broken", "image": "not an image!"}]}]}}),
        encoding="utf-8",
    )

    result = _run("--manifest", str(manifest), "--output-dir", str(tmp_path), "--settle-delay-ms", "0", cwd=tmp_path)

    assert result.returncode == 1
    assert "Deck export failed: Failed to export visual as image" in result.stderr
    assert "Traceback" not in result.stderr


def test_cli_writes_deck_from_sample_manifest(tmp_path: Path) -> None:
    result = _run(
        "--manifest",
        str(SAMPLE_MANIFEST),
        "--page",
        "Overview",
        "--title",
        "Sales Overview",
        "--output-dir",
        str(tmp_path),
        "--settle-delay-ms",
        "0",
        cwd=tmp_path,
    )

    assert result.returncode == 0, result.stderr
    decks = list(tmp_path.glob("Sales-Overview-*.pptx"))
    assert len(decks) == 1
    assert "Selected visuals: 2" in result.stdout


def test_cli_lists_visuals(tmp_path: Path) -> None:
    result = _run("--sample", "--list-visuals", cwd=tmp_path)

    assert result.returncode == 0, result.stderr
    assert "ReportSection1::revenueByRegion\tRevenue by Region\tclusteredColumnChart\t640x360" in result.stdout
    assert "ReportSection2\tTrends" in result.stdout
