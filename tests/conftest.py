"""Shared test fixtures."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from justly.runners import RecordingRunner


@pytest.fixture
def recording_runner() -> RecordingRunner:
    """Provide a runner that records command lines instead of spawning them."""
    return RecordingRunner()


@pytest.fixture
def write_justfile(tmp_path: Path) -> Callable[[str], Path]:
    """Write dedented justfile text into a temporary project directory."""

    def write(text: str) -> Path:
        path = tmp_path / "justfile"
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return path

    return write
