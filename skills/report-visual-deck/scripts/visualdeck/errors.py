"""Custom exceptions for report visual export and deck composition."""

from __future__ import annotations

import json
from typing import Any, Optional


class ConfigValidationError(ValueError):
    """Raised when a report manifest or CLI config is invalid."""

    def __init__(self, issues: list[str]):
        self.issues = [str(i).strip() for i in issues if str(i).strip()]
        if not self.issues:
            self.issues = ["Invalid configuration"]
        super().__init__(self._format())

    def _format(self) -> str:
        lines = ["Configuration validation failed:"]
        for issue in self.issues:
            lines.append(f"- {issue}")
        return "\n".join(lines)


class DeckExportError(RuntimeError):
    """Base class for runtime failures while exporting visuals or building a deck."""


class PreconditionError(DeckExportError):
    """Raised when an operation runs before its required predecessor."""


class SessionBusyError(DeckExportError):
    """Raised when a top-level operation is requested while another one runs."""

    def __init__(self, running: str, requested: str):
        self.running = running
        self.requested = requested
        super().__init__(f"'{requested}' rejected: '{running}' is still running")


class AcquisitionError(DeckExportError):
    """Raised when no image could be obtained for a visual."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class CapabilityMissingError(AcquisitionError):
    """The report exposes no image export entry point at all."""


class AcquisitionFailedError(AcquisitionError):
    """Every export strategy failed or returned data that is not an image."""


def error_message(error: Any) -> str:
    """Return the most specific human-readable message carried by ``error``."""
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error

    if isinstance(error, BaseException):
        message = str(error).strip()
        if message:
            return message
        detailed = getattr(error, "detailedMessage", None) or getattr(error, "detailed_message", None)
        if detailed:
            return str(detailed)
        return type(error).__name__

    if isinstance(error, dict):
        nested = error.get("error") if isinstance(error.get("error"), dict) else {}
        body = error.get("body") if isinstance(error.get("body"), dict) else {}
        for candidate in (
            error.get("message"),
            error.get("detailedMessage"),
            nested.get("message"),
            body.get("message"),
        ):
            if candidate:
                return str(candidate)
        try:
            return json.dumps(error, default=str)
        except (TypeError, ValueError):
            return repr(error)

    return str(error)
