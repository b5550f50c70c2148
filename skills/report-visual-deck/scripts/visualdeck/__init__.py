"""Export report visuals to PPTX decks, one visual per slide."""

from .api import apply_selection, export_deck, generate_deck_from_manifest, split_visual_ref, write_manifest
from .cli import run_cli
from .codec import normalize
from .errors import (
    AcquisitionError,
    AcquisitionFailedError,
    CapabilityMissingError,
    ConfigValidationError,
    DeckExportError,
    PreconditionError,
    SessionBusyError,
)
from .manifest import ManifestReport, validate_manifest, validate_manifest_file
from .sample import SampleReport
from .selection import SelectionIndex, make_visual_key, parse_visual_key
from .session import DeckOptions, ExportSession

__all__ = [
    "AcquisitionError",
    "AcquisitionFailedError",
    "CapabilityMissingError",
    "ConfigValidationError",
    "DeckExportError",
    "DeckOptions",
    "ExportSession",
    "ManifestReport",
    "PreconditionError",
    "SampleReport",
    "SelectionIndex",
    "SessionBusyError",
    "apply_selection",
    "export_deck",
    "generate_deck_from_manifest",
    "make_visual_key",
    "normalize",
    "parse_visual_key",
    "run_cli",
    "split_visual_ref",
    "validate_manifest",
    "validate_manifest_file",
    "write_manifest",
]
