"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

EXIT_CONFIGURATION_ERROR = 2


class ErrorCode(StrEnum):
    """Stable error identifiers used by the CLI and library callers."""

    SYNTAX = "E_SYNTAX"
    UNRESOLVED_REFERENCE = "E_UNRESOLVED_REFERENCE"
    CYCLIC_REFERENCE = "E_CYCLIC_REFERENCE"
    RECIPE = "E_RECIPE"
    ENVIRONMENT = "E_ENVIRONMENT"
    SUBPROCESS = "E_SUBPROCESS"


class JustlyError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def exit_code(self) -> int:
        return EXIT_CONFIGURATION_ERROR

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class JustfileSyntaxError(JustlyError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.SYNTAX, hint=hint, context=context)


class UnresolvedReferenceError(JustlyError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNRESOLVED_REFERENCE, hint=hint, context=context)


class CyclicReferenceError(JustlyError):
    """Raised when a variable transitively depends on itself."""

    def __init__(
        self,
        message: str,
        *,
        cycle: tuple[str, ...] = (),
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = dict(context or {})
        if cycle:
            merged.setdefault("cycle", " -> ".join(cycle))
        super().__init__(message, code=ErrorCode.CYCLIC_REFERENCE, hint=hint, context=merged)
        self.cycle = cycle


class RecipeError(JustlyError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.RECIPE, hint=hint, context=context)


class EnvironmentVariableError(JustlyError):
    """`env_var()` read a variable that is not set in the environment."""

    def __init__(
        self,
        message: str,
        *,
        variable: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = dict(context or {})
        merged.setdefault("variable", variable)
        super().__init__(message, code=ErrorCode.ENVIRONMENT, hint=hint, context=merged)
        self.variable = variable


class SubprocessFailure(JustlyError):
    """A command line exited non-zero; the exit status is forwarded."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = dict(context or {})
        merged.setdefault("returncode", str(returncode))
        super().__init__(message, code=ErrorCode.SUBPROCESS, hint=hint, context=merged)
        self.returncode = returncode

    @property
    def exit_code(self) -> int:
        # subprocess reports death by signal as -signum.
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode or 1


__all__ = [
    "EXIT_CONFIGURATION_ERROR",
    "CyclicReferenceError",
    "EnvironmentVariableError",
    "ErrorCode",
    "JustfileSyntaxError",
    "JustlyError",
    "RecipeError",
    "SubprocessFailure",
    "UnresolvedReferenceError",
]
