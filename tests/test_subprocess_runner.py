import shutil
import subprocess
import sys
import time
from pathlib import Path

import pytest

from justly.errors import SubprocessFailure
from justly.executor import Executor
from justly.models import CommandSpec
from justly.parser import parse_justfile
from justly.runners import SubprocessRunner

pytestmark = pytest.mark.skipif(
    not sys.platform.startswith("linux") or shutil.which("sh") is None,
    reason="Subprocess runner tests need a POSIX shell.",
)


def test_runner_returns_child_exit_status(tmp_path: Path) -> None:
    runner = SubprocessRunner()
    command = CommandSpec(argv=("sh", "-c", "exit 7"), env={"PATH": "/usr/bin:/bin"}, cwd=tmp_path)

    assert runner.run(command) == 7


def test_runner_passes_environment_and_cwd(tmp_path: Path) -> None:
    runner = SubprocessRunner()
    command = CommandSpec(
        argv=("sh", "-c", 'printf "%s" "$GREETING" > out.txt'),
        env={"PATH": "/usr/bin:/bin", "GREETING": "hi"},
        cwd=tmp_path,
    )

    assert runner.run(command) == 0
    assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "hi"


def test_missing_shell_raises_subprocess_failure(tmp_path: Path) -> None:
    runner = SubprocessRunner()
    command = CommandSpec(argv=(str(tmp_path / "no-such-shell"), "-c", "true"), cwd=tmp_path)

    with pytest.raises(SubprocessFailure) as excinfo:
        runner.run(command)
    assert excinfo.value.returncode == 127


def test_cargo_variable_expands_in_real_shell(tmp_path: Path) -> None:
    fake_cargo = tmp_path / "cargo"
    fake_cargo.write_text('#!/bin/sh\necho "cargo $*" > invoked.txt\n', encoding="utf-8")
    fake_cargo.chmod(0o755)
    justfile = parse_justfile(
        'set export\nCARGO := env("CARGO", "cargo")\ncheck:\n    $CARGO clippy --all\n',
        tmp_path / "justfile",
    )
    executor = Executor(
        justfile,
        runner=SubprocessRunner(),
        environ={"PATH": f"{tmp_path}:/usr/bin:/bin"},
        echo=lambda _text: None,
    )

    executor.run("check")

    assert (tmp_path / "invoked.txt").read_text(encoding="utf-8") == "cargo clippy --all\n"


def test_second_of_three_lines_failing_stops_real_execution(tmp_path: Path) -> None:
    justfile = parse_justfile(
        "build:\n    touch one\n    exit 4\n    touch three\n",
        tmp_path / "justfile",
    )
    executor = Executor(
        justfile,
        runner=SubprocessRunner(),
        environ={"PATH": "/usr/bin:/bin"},
        echo=lambda _text: None,
    )

    with pytest.raises(SubprocessFailure) as excinfo:
        executor.run("build")

    assert excinfo.value.returncode == 4
    assert (tmp_path / "one").exists()
    assert not (tmp_path / "three").exists()


def test_interrupt_is_forwarded_to_child_and_reraised(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    script = "trap 'kill $pid; exit 9' INT; sleep 5 & pid=$!; touch ready; wait $pid"
    command = CommandSpec(argv=("sh", "-c", script), env={"PATH": "/usr/bin:/bin"}, cwd=tmp_path)
    original_wait = subprocess.Popen.wait
    waited: list[subprocess.Popen] = []

    def interrupted_wait(self: subprocess.Popen, timeout: float | None = None) -> int:
        if not waited:
            waited.append(self)
            deadline = time.monotonic() + 5
            while not (tmp_path / "ready").exists() and time.monotonic() < deadline:
                time.sleep(0.01)
            raise KeyboardInterrupt
        return original_wait(self, timeout)

    monkeypatch.setattr(subprocess.Popen, "wait", interrupted_wait)

    with pytest.raises(KeyboardInterrupt):
        SubprocessRunner().run(command)

    # exit status 9 comes from the child's INT trap.
    assert waited[0].returncode == 9
