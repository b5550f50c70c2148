"""Export report visuals into a PPTX deck.

Reads a report (a JSON manifest, or the built-in sample report), lets you pick
pages/visuals, rasterizes each selected visual and writes one slide per visual.
"""

from __future__ import annotations

from visualdeck.cli import run_cli


def main() -> None:
    run_cli()


if __name__ == "__main__":
    main()
