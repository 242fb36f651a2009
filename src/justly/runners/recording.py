"""Runner that records commands instead of spawning processes.

Used by tests and dry tooling to observe exactly which command lines the
executor would run, with which environment, in which order.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from justly.models import CommandSpec


@dataclass(slots=True)
class RecordingRunner:
    """Record every command; return scripted exit codes keyed by command text."""

    name: str = "recording"
    exit_codes: Mapping[str, int] = field(default_factory=dict)
    commands: list[CommandSpec] = field(default_factory=list)

    def run(self, command: CommandSpec) -> int:
        self.commands.append(command)
        return self.exit_codes.get(command.command, 0)

    @property
    def command_lines(self) -> list[str]:
        return [command.command for command in self.commands]
