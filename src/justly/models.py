"""Core typed dataclasses for parsed justfiles and per-run invocation state."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Union

DEFAULT_SHELL: tuple[str, ...] = ("sh", "-cu")

ParameterKind = Literal["single", "plus", "star"]


@dataclass(frozen=True, slots=True)
class Settings:
    export: bool = False
    ignore_comments: bool = False
    positional_arguments: bool = False
    shell: tuple[str, ...] = DEFAULT_SHELL


# Setting keys as spelled in a justfile, mapped to their Settings field.
SETTING_FIELDS: dict[str, str] = {
    "export": "export",
    "ignore-comments": "ignore_comments",
    "positional-arguments": "positional_arguments",
    "shell": "shell",
}


@dataclass(frozen=True, slots=True)
class StringLiteral:
    value: str


@dataclass(frozen=True, slots=True)
class Variable:
    name: str


@dataclass(frozen=True, slots=True)
class Positional:
    index: int


@dataclass(frozen=True, slots=True)
class Call:
    name: str
    args: tuple[Expression, ...] = ()


@dataclass(frozen=True, slots=True)
class Concat:
    lhs: Expression
    rhs: Expression


@dataclass(frozen=True, slots=True)
class Join:
    lhs: Expression
    rhs: Expression


Expression = Union[StringLiteral, Variable, Positional, Call, Concat, Join]


@dataclass(frozen=True, slots=True)
class Assignment:
    name: str
    expression: Expression
    exported: bool = False
    line: int = 0


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    default: Expression | None = None
    kind: ParameterKind = "single"

    @property
    def variadic(self) -> bool:
        return self.kind != "single"

    @property
    def required(self) -> bool:
        if self.kind == "star":
            return False
        return self.default is None


Fragment = Union[str, Expression]


@dataclass(frozen=True, slots=True)
class Line:
    fragments: tuple[Fragment, ...]
    number: int = 0

    def literal_prefix(self) -> str:
        """Return the leading literal text, used to detect `@` and `#` markers."""
        if self.fragments and isinstance(self.fragments[0], str):
            return self.fragments[0]
        return ""


@dataclass(frozen=True, slots=True)
class Recipe:
    name: str
    parameters: tuple[Parameter, ...] = ()
    dependencies: tuple[str, ...] = ()
    body: tuple[Line, ...] = ()
    quiet: bool = False
    doc: str | None = None
    line: int = 0

    @property
    def private(self) -> bool:
        return self.name.startswith("_")

    def min_arguments(self) -> int:
        return sum(1 for parameter in self.parameters if parameter.required)

    def max_arguments(self) -> int | None:
        if any(parameter.variadic for parameter in self.parameters):
            return None
        return len(self.parameters)


@dataclass(frozen=True, slots=True)
class Justfile:
    path: Path
    settings: Settings = field(default_factory=Settings)
    assignments: Mapping[str, Assignment] = field(default_factory=dict)
    recipes: Mapping[str, Recipe] = field(default_factory=dict)

    @property
    def directory(self) -> Path:
        return self.path.parent

    def recipe(self, name: str) -> Recipe | None:
        return self.recipes.get(name)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """One command line, ready to hand to a process runner."""

    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None
    recipe: str = ""
    line: int = 0
    command: str = ""
    echo: bool = True


@dataclass(frozen=True, slots=True)
class InvocationContext:
    settings: Settings
    environment: Mapping[str, str]
    arguments: tuple[str, ...] = ()
    justfile: Path = field(default_factory=lambda: Path("justfile"))
    working_directory: Path = field(default_factory=Path.cwd)
    executable: str = "justly"

    @classmethod
    def build(
        cls,
        *,
        settings: Settings,
        environment: Mapping[str, str],
        arguments: tuple[str, ...] | list[str] = (),
        justfile: Path,
        working_directory: Path | None = None,
        executable: str = "justly",
    ) -> InvocationContext:
        return cls(
            settings=settings,
            environment=MappingProxyType(dict(environment)),
            arguments=tuple(arguments),
            justfile=justfile,
            working_directory=working_directory or justfile.parent,
            executable=executable,
        )


InvocationState = Literal["idle", "resolving", "executing", "done", "failed"]
