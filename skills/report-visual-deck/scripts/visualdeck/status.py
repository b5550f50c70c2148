"""Timestamped status lines for long-running export operations."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Literal, Optional

StatusKind = Literal["info", "success", "error"]

_MARKERS = {"info": "", "success": "✅ ", "error": "⚠️  "}


@dataclass(frozen=True)
class StatusEntry:
    stamp: str
    kind: StatusKind
    message: str

    def render(self) -> str:
        return f"[{self.stamp}] {_MARKERS.get(self.kind, '')}{self.message}"


class StatusLog:
    """Collects status entries and echoes them (errors to stderr, the rest to stdout)."""

    def __init__(self, *, echo: bool = True, clock: Optional[Callable[[], datetime]] = None):
        self.echo = echo
        self._clock = clock or datetime.now
        self.entries: List[StatusEntry] = []

    def __call__(self, message: str, kind: StatusKind = "info") -> StatusEntry:
        entry = StatusEntry(self._clock().strftime("%H:%M:%S"), kind, str(message))
        self.entries.append(entry)
        if self.echo:
            stream = sys.stderr if kind == "error" else sys.stdout
            print(entry.render(), file=stream)
        return entry

    def messages(self, kind: Optional[StatusKind] = None) -> List[str]:
        return [e.message for e in self.entries if kind is None or e.kind == kind]
