"""Variable resolution for justfile expressions.

Assignments are evaluated lazily with memoization. A visiting stack guards
against reference cycles so a bad variable graph fails with
:class:`CyclicReferenceError` instead of exhausting the interpreter stack.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from justly.errors import CyclicReferenceError, UnresolvedReferenceError
from justly.functions import FunctionContext, get_builtin
from justly.models import (
    Assignment,
    Call,
    Concat,
    Expression,
    Join,
    Justfile,
    Line,
    Positional,
    StringLiteral,
    Variable,
)


class Evaluator:
    def __init__(
        self,
        justfile: Justfile,
        *,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, str] | None = None,
        executable: str = "justly",
        invocation_directory: Path | None = None,
    ) -> None:
        self.justfile = justfile
        self.executable = executable
        self.invocation_directory = invocation_directory or Path.cwd()
        self._environ: dict[str, str] = dict(os.environ if environ is None else environ)
        self._overrides = dict(overrides or {})
        self._values: dict[str, str] = {}
        self._visiting: list[str] = []

        for name in self._overrides:
            if name not in justfile.assignments:
                raise UnresolvedReferenceError(
                    f"Variable `{name}` overridden on the command line is not defined.",
                    hint="Only variables assigned in the justfile can be overridden.",
                    context={"variable": name},
                )

    def evaluate(self, name: str) -> str:
        if name in self._values:
            return self._values[name]
        assignment = self.justfile.assignments.get(name)
        if assignment is None:
            raise UnresolvedReferenceError(
                f"Variable `{name}` is not defined.",
                context={"variable": name, "path": str(self.justfile.path)},
            )
        if name in self._visiting:
            start = self._visiting.index(name)
            cycle = (*self._visiting[start:], name)
            raise CyclicReferenceError(
                f"Variable `{name}` depends on itself.",
                cycle=cycle,
                context={"line": str(assignment.line)},
            )

        self._visiting.append(name)
        try:
            if name in self._overrides:
                value = self._overrides[name]
            else:
                value = self.evaluate_expression(assignment.expression)
        finally:
            self._visiting.pop()

        self._values[name] = value
        if self._exports(assignment):
            self._environ[name] = value
        return value

    def evaluate_all(self) -> dict[str, str]:
        """Resolve every assignment in definition order."""
        return {name: self.evaluate(name) for name in self.justfile.assignments}

    def environment(self) -> Mapping[str, str]:
        """Return the child-process environment after resolving every assignment."""
        self.evaluate_all()
        return MappingProxyType(dict(self._environ))

    def evaluate_expression(
        self,
        expression: Expression,
        scope: Mapping[str, str] | None = None,
        positional: tuple[str, ...] = (),
    ) -> str:
        if isinstance(expression, StringLiteral):
            return expression.value
        if isinstance(expression, Variable):
            if scope is not None and expression.name in scope:
                return scope[expression.name]
            return self.evaluate(expression.name)
        if isinstance(expression, Positional):
            if expression.index >= len(positional):
                raise UnresolvedReferenceError(
                    f"Positional argument {expression.index} was not supplied.",
                    context={"index": str(expression.index)},
                )
            return positional[expression.index]
        if isinstance(expression, Concat):
            return self.evaluate_expression(expression.lhs, scope, positional) + self.evaluate_expression(
                expression.rhs, scope, positional
            )
        if isinstance(expression, Join):
            lhs = self.evaluate_expression(expression.lhs, scope, positional)
            rhs = self.evaluate_expression(expression.rhs, scope, positional)
            return lhs.rstrip("/") + "/" + rhs.lstrip("/")
        if isinstance(expression, Call):
            return self._call(expression, scope, positional)
        raise TypeError(f"Unsupported expression: {expression!r}")

    def evaluate_line(
        self,
        line: Line,
        scope: Mapping[str, str] | None = None,
        positional: tuple[str, ...] = (),
    ) -> str:
        parts: list[str] = []
        for fragment in line.fragments:
            if isinstance(fragment, str):
                parts.append(fragment)
            else:
                parts.append(self.evaluate_expression(fragment, scope, positional))
        return "".join(parts)

    def _call(
        self,
        call: Call,
        scope: Mapping[str, str] | None,
        positional: tuple[str, ...],
    ) -> str:
        builtin = get_builtin(call.name)
        if builtin is None:
            raise UnresolvedReferenceError(
                f"Function `{call.name}` is not defined.",
                context={"function": call.name},
            )
        args = [self.evaluate_expression(arg, scope, positional) for arg in call.args]
        context = FunctionContext(
            justfile=self.justfile.path,
            executable=self.executable,
            invocation_directory=self.invocation_directory,
            environment=self._environ,
        )
        return builtin.impl(context, *args)

    def _exports(self, assignment: Assignment) -> bool:
        return self.justfile.settings.export or assignment.exported


__all__ = ["Evaluator"]
