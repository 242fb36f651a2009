"""Protocol for command-line process runners."""

from __future__ import annotations

from typing import Protocol

from justly.models import CommandSpec


class ProcessRunner(Protocol):
    name: str

    def run(self, command: CommandSpec) -> int:
        """Run one command line to completion and return its exit status."""
