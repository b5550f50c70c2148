from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from visualdeck.errors import ConfigValidationError, error_message  # noqa: E402
from visualdeck.status import StatusLog  # noqa: E402


def test_status_lines_are_timestamped_and_routed(capsys: pytest.CaptureFixture[str]) -> None:
    log = StatusLog(clock=lambda: datetime(2024, 1, 1, 9, 5, 7))
    log("Exporting 1/2: Revenue")
    log("Deck generated: deck.pptx", "success")
    log("Generate PPTX failed: boom", "error")

    out, err = capsys.readouterr()
    assert "[09:05:07] Exporting 1/2: Revenue" in out
    assert "[09:05:07] ✅ Deck generated: deck.pptx" in out
    assert "[09:05:07] ⚠️  Generate PPTX failed: boom" in err
    assert log.messages("error") == ["Generate PPTX failed: boom"]


def test_quiet_log_still_records() -> None:
    log = StatusLog(echo=False)
    log("hello")
    assert log.messages() == ["hello"]


class SdkError(Exception):
    def __init__(self) -> None:
        super().__init__()
        self.detailedMessage = "Visual is not rendered"


def test_error_message_prefers_most_specific_text() -> None:
    assert error_message(RuntimeError("boom")) == "boom"
    assert error_message(SdkError()) == "Visual is not rendered"
    assert error_message(KeyError()) == "KeyError"
    assert error_message({"detailedMessage": "detail"}) == "detail"
    assert error_message({"error": {"message": "nested"}}) == "nested"
    assert error_message({"code": 5}) == '{"code": 5}'
    assert error_message(None) == "Unknown error"


def test_config_validation_error_formats_issue_list() -> None:
    err = ConfigValidationError(["first", " ", "second"])
    assert err.issues == ["first", "second"]
    assert str(err) == "Configuration validation failed:\n- first\n- second"
