"""Run command lines as real child processes.

Children inherit stdin, stdout and stderr so wrapped tools talk to the
terminal directly. An interrupt delivered to this process is forwarded to the
running child before the invocation is aborted.
"""

from __future__ import annotations

import signal
import subprocess
from dataclasses import dataclass

from justly.errors import SubprocessFailure
from justly.models import CommandSpec

COMMAND_NOT_FOUND = 127


@dataclass(slots=True)
class SubprocessRunner:
    name: str = "subprocess"

    def run(self, command: CommandSpec) -> int:
        try:
            process = subprocess.Popen(
                list(command.argv),
                cwd=str(command.cwd) if command.cwd is not None else None,
                env=dict(command.env),
            )
        except FileNotFoundError as exc:
            raise SubprocessFailure(
                f"Could not start shell `{command.argv[0]}`.",
                returncode=COMMAND_NOT_FOUND,
                hint="Check the `shell` setting and that the interpreter is on PATH.",
                context={
                    "runner": self.name,
                    "recipe": command.recipe,
                    "line": str(command.line),
                    "error": str(exc),
                },
            ) from exc

        try:
            return process.wait()
        except KeyboardInterrupt:
            process.send_signal(signal.SIGINT)
            process.wait()
            raise
