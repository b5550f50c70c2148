"""Runtime settings from environment variables and optional ``.env`` files.

Lookup order for ``.env`` files: skill directory, current working
directory, then an explicit ``--env-file``. Variables already present in the
process environment are never overridden.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AbstractSet, Dict, Mapping, Optional, Tuple

from .credentials import AccessToken, DEFAULT_CLOUD
from .geometry import DEFAULT_LAYOUT, clamp_number, resolve_layout_name

ENV_PREFIX = "VISUALDECK_"

MIN_SCALE = 1.0
MAX_SCALE = 4.0
DEFAULT_SCALE = 2.0


def skill_root() -> Path:
    return Path(__file__).resolve().parents[2]


_ENV_LINE_RE = re.compile(r"^(?:export\s+)?(?P<key>[A-Za-z_][A-Za-z0-9_.]*)\s*=\s*(?P<value>.*)$")


def parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """Parse one ``KEY=VALUE`` line; ``None`` for blanks, comments and junk."""
    match = _ENV_LINE_RE.match(line.strip())
    if not match:
        return None
    value = match.group("value").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    elif value[:1] not in ("\"", "'"):
        value = value.split("#", 1)[0].rstrip()
    return match.group("key"), value


def read_env_file(env_path: Path) -> Dict[str, str]:
    if not env_path.is_file():
        return {}
    try:
        lines = env_path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return {}
    return dict(filter(None, map(parse_env_line, lines)))


def load_env_file(env_path: Path, *, locked_keys: AbstractSet[str]) -> None:
    for key, value in read_env_file(env_path).items():
        if key not in locked_keys:
            os.environ[key] = value


def load_default_env_files(*, explicit_env_file: Optional[str] = None) -> None:
    locked_keys = set(os.environ.keys())
    load_env_file(skill_root() / ".env", locked_keys=locked_keys)
    load_env_file(Path.cwd() / ".env", locked_keys=locked_keys)
    if explicit_env_file:
        load_env_file(Path(explicit_env_file).expanduser().resolve(), locked_keys=locked_keys)


def _parse_timestamp(value: str) -> Optional[datetime]:
    value = (value or "").strip()
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ExportSettings:
    access_token: Optional[AccessToken] = None
    cloud: str = DEFAULT_CLOUD
    scopes: str = ""
    settle_delay: float = 0.3
    load_timeout: float = 45.0
    http_timeout: float = 30.0
    image_scale: float = DEFAULT_SCALE
    layout: str = DEFAULT_LAYOUT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ExportSettings":
        env = os.environ if env is None else env
        token_value = str(env.get(ENV_PREFIX + "ACCESS_TOKEN") or "").strip()
        token = None
        if token_value:
            token = AccessToken(token_value, _parse_timestamp(str(env.get(ENV_PREFIX + "TOKEN_EXPIRES_ON") or "")))
        return cls(
            access_token=token,
            cloud=str(env.get(ENV_PREFIX + "CLOUD") or DEFAULT_CLOUD).strip(),
            scopes=str(env.get(ENV_PREFIX + "SCOPES") or "").strip(),
            settle_delay=max(0.0, _float(env, "SETTLE_DELAY_MS", 300.0) / 1000.0),
            load_timeout=max(1.0, _float(env, "LOAD_TIMEOUT_S", 45.0)),
            http_timeout=max(1.0, _float(env, "HTTP_TIMEOUT_S", 30.0)),
            image_scale=clamp_number(env.get(ENV_PREFIX + "IMAGE_SCALE"), MIN_SCALE, MAX_SCALE, DEFAULT_SCALE),
            layout=resolve_layout_name(str(env.get(ENV_PREFIX + "LAYOUT") or DEFAULT_LAYOUT)),
        )
