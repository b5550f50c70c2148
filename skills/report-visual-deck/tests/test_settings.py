from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

SCRIPT_DIR = Path(__file__).resolve().parents[1] / "scripts"
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from visualdeck.credentials import (  # noqa: E402
    AccessToken,
    TokenProvider,
    cloud_profile,
    parse_scopes,
    resolve_access_token,
)
from visualdeck.errors import PreconditionError  # noqa: E402
from visualdeck.settings import ExportSettings, load_env_file, parse_env_line, read_env_file  # noqa: E402

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_env_line_handles_export_quotes_and_comments() -> None:
    assert parse_env_line("export VISUALDECK_CLOUD=gcc") == ("VISUALDECK_CLOUD", "gcc")
    assert parse_env_line('VISUALDECK_ACCESS_TOKEN="abc#def"') == ("VISUALDECK_ACCESS_TOKEN", "abc#def")
    assert parse_env_line("VISUALDECK_IMAGE_SCALE=3 # sharper") == ("VISUALDECK_IMAGE_SCALE", "3")
    assert parse_env_line("# comment") is None
    assert parse_env_line("garbage") is None


def test_env_file_does_not_override_locked_keys(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VISUALDECK_CLOUD", "china")
    monkeypatch.setenv("VISUALDECK_LAYOUT", "LAYOUT_WIDE")
    env_file = tmp_path / ".env"
    env_file.write_text("VISUALDECK_CLOUD=gcc\nVISUALDECK_LAYOUT=LAYOUT_16x9\n", encoding="utf-8")

    load_env_file(env_file, locked_keys={"VISUALDECK_CLOUD"})

    assert os.environ["VISUALDECK_CLOUD"] == "china"
    assert os.environ["VISUALDECK_LAYOUT"] == "LAYOUT_16x9"


def test_settings_from_env_defaults() -> None:
    settings = ExportSettings.from_env({})
    assert settings.access_token is None
    assert settings.cloud == "commercial"
    assert settings.settle_delay == pytest.approx(0.3)
    assert settings.load_timeout == 45
    assert settings.image_scale == 2
    assert settings.layout == "LAYOUT_WIDE"


def test_settings_from_env_parses_and_clamps() -> None:
    settings = ExportSettings.from_env(
        {
            "VISUALDECK_ACCESS_TOKEN": " tok ",
            "VISUALDECK_TOKEN_EXPIRES_ON": "2024-01-01T12:30:00Z",
            "VISUALDECK_SETTLE_DELAY_MS": "750",
            "VISUALDECK_IMAGE_SCALE": "9",
            "VISUALDECK_LAYOUT": "LAYOUT_BOGUS",
            "VISUALDECK_HTTP_TIMEOUT_S": "not-a-number",
        }
    )
    assert settings.access_token == AccessToken("tok", datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc))
    assert settings.settle_delay == pytest.approx(0.75)
    assert settings.image_scale == 4
    assert settings.layout == "LAYOUT_WIDE"
    assert settings.http_timeout == 30


def test_token_expiry_uses_two_minute_skew() -> None:
    token = AccessToken("t", NOW + timedelta(minutes=3))
    assert token.is_expiring(now=NOW) is False
    assert token.is_expiring(now=NOW + timedelta(minutes=1, seconds=30)) is True
    assert AccessToken("t").is_expiring(now=NOW) is False


def test_resolve_access_token_prefers_refresh_when_cached_is_expiring() -> None:
    cached = AccessToken("old", NOW + timedelta(minutes=1))
    fresh = AccessToken("new", NOW + timedelta(hours=1))

    assert resolve_access_token(cached=cached, refresh=lambda: fresh, now=NOW) is fresh
    assert resolve_access_token(cached=fresh, refresh=lambda: cached, now=NOW) is fresh
    assert resolve_access_token(" manual ").value == "manual"

    with pytest.raises(PreconditionError) as exc:
        resolve_access_token("  ")
    assert str(exc.value) == "Access token is required."


def test_scopes_default_per_cloud() -> None:
    assert parse_scopes("", "gcc") == [cloud_profile("gcc").default_scope]
    assert parse_scopes("a b,c") == ["a", "b", "c"]
    assert cloud_profile("mars").id == "commercial"
    assert cloud_profile("gccHigh").authority_base == "https://login.microsoftonline.us"


def test_env_file_reader_skips_junk_and_keeps_last_value(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# settings\n\nexport VISUALDECK_SCOPES='a b'\nnot a line\nVISUALDECK_CLOUD=gcc\nVISUALDECK_CLOUD=dod\n",
        encoding="utf-8",
    )

    assert read_env_file(env_file) == {"VISUALDECK_SCOPES": "a b", "VISUALDECK_CLOUD": "dod"}
    assert read_env_file(tmp_path / "missing.env") == {}


def test_settings_read_scopes() -> None:
    settings = ExportSettings.from_env({"VISUALDECK_SCOPES": " x,y ", "VISUALDECK_CLOUD": "china"})
    assert settings.scopes == "x,y"
    assert settings.cloud == "china"


def test_token_provider_without_token_or_refresher_is_anonymous() -> None:
    assert TokenProvider()() is None
    assert TokenProvider(AccessToken("static"))() == "static"


def test_token_provider_refreshes_expiring_token_with_cloud_scopes() -> None:
    calls = []

    def refresh(profile, scopes):
        calls.append((profile.id, scopes))
        return AccessToken(f"fresh-{len(calls)}", NOW + timedelta(hours=1))

    provider = TokenProvider(
        AccessToken("old", NOW + timedelta(minutes=1)),
        refresh=refresh,
        cloud="gcc",
        clock=lambda: NOW,
    )

    assert provider() == "fresh-1"
    assert provider() == "fresh-1"
    assert calls == [("gcc", [cloud_profile("gcc").default_scope])]
