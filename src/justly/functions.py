"""Built-in functions callable from justfile expressions."""

from __future__ import annotations

import os
import platform
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from justly.errors import EnvironmentVariableError


@dataclass(frozen=True, slots=True)
class FunctionContext:
    justfile: Path
    executable: str
    invocation_directory: Path
    environment: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class Builtin:
    name: str
    min_args: int
    max_args: int
    impl: Callable[..., str]

    def accepts(self, count: int) -> bool:
        return self.min_args <= count <= self.max_args


def quote(_: FunctionContext, value: str) -> str:
    """Wrap *value* in single quotes, escaping embedded single quotes."""
    return "'" + value.replace("'", "'\\''") + "'"


def just_executable(context: FunctionContext) -> str:
    return context.executable


def justfile(context: FunctionContext) -> str:
    return str(context.justfile)


def justfile_directory(context: FunctionContext) -> str:
    return str(context.justfile.parent)


def invocation_directory(context: FunctionContext) -> str:
    return str(context.invocation_directory)


def env(context: FunctionContext, name: str, default: str) -> str:
    """Read *name* from the environment, falling back to *default* when unset."""
    value = context.environment.get(name)
    return default if value is None else value


def env_var(context: FunctionContext, name: str) -> str:
    value = context.environment.get(name)
    if value is None:
        raise EnvironmentVariableError(
            f"Environment variable `{name}` is not set.",
            variable=name,
            hint=f'Set {name} or provide a fallback: env("{name}", "<default>").',
            context={"function": "env_var"},
        )
    return value


def os_name(_: FunctionContext) -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "macos"
    if sys.platform in ("win32", "cygwin"):
        return "windows"
    return sys.platform


def os_family(_: FunctionContext) -> str:
    return "windows" if os.name == "nt" else "unix"


def arch(_: FunctionContext) -> str:
    machine = platform.machine().lower()
    return {"amd64": "x86_64", "arm64": "aarch64"}.get(machine, machine)


BUILTINS: dict[str, Builtin] = {
    builtin.name: builtin
    for builtin in (
        Builtin("quote", 1, 1, quote),
        Builtin("just_executable", 0, 0, just_executable),
        Builtin("justfile", 0, 0, justfile),
        Builtin("justfile_directory", 0, 0, justfile_directory),
        Builtin("invocation_directory", 0, 0, invocation_directory),
        Builtin("env", 2, 2, env),
        Builtin("env_var", 1, 1, env_var),
        Builtin("env_var_or_default", 2, 2, env),
        Builtin("os", 0, 0, os_name),
        Builtin("os_family", 0, 0, os_family),
        Builtin("arch", 0, 0, arch),
        Builtin("uppercase", 1, 1, lambda _, value: value.upper()),
        Builtin("lowercase", 1, 1, lambda _, value: value.lower()),
        Builtin("trim", 1, 1, lambda _, value: value.strip()),
    )
}


def get_builtin(name: str) -> Builtin | None:
    return BUILTINS.get(name)


__all__ = ["BUILTINS", "Builtin", "FunctionContext", "get_builtin"]
