"""Locate the justfile for an invocation."""

from __future__ import annotations

from pathlib import Path

from justly.errors import JustfileSyntaxError

JUSTFILE_NAMES = ("justfile", "Justfile", ".justfile")


def find_justfile(start: str | Path | None = None) -> Path:
    """Search *start* and its parents for a justfile, nearest first."""
    directory = Path(start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        for name in JUSTFILE_NAMES:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
    raise JustfileSyntaxError(
        "No justfile found.",
        hint="Create a justfile or pass --justfile PATH.",
        context={"search_start": str(directory)},
    )
