"""Public package entrypoint for the justly task runner."""

from .errors import (
    CyclicReferenceError,
    EnvironmentVariableError,
    ErrorCode,
    JustfileSyntaxError,
    JustlyError,
    RecipeError,
    SubprocessFailure,
    UnresolvedReferenceError,
)
from .evaluator import Evaluator
from .executor import Executor, PlannedRecipe
from .listing import list_recipes
from .models import (
    CommandSpec,
    InvocationContext,
    Justfile,
    Recipe,
    Settings,
)
from .parser import parse_justfile, read_justfile

__all__ = [
    "CommandSpec",
    "CyclicReferenceError",
    "EnvironmentVariableError",
    "ErrorCode",
    "Evaluator",
    "Executor",
    "InvocationContext",
    "JustfileSyntaxError",
    "JustlyError",
    "Justfile",
    "PlannedRecipe",
    "Recipe",
    "RecipeError",
    "Settings",
    "SubprocessFailure",
    "UnresolvedReferenceError",
    "list_recipes",
    "parse_justfile",
    "read_justfile",
]
