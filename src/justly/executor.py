"""Recipe planning and execution.

An invocation moves through ``idle -> resolving -> executing -> done`` (or
``failed``). Parsing happens before an ``Executor`` exists: it is handed an
already parsed ``Justfile``, so its own lifecycle starts at ``idle``. Every
command line of the plan is rendered during resolving, so unknown recipes, bad
arguments and unresolved variables are all reported before the first process
is spawned. The ``InvocationContext`` built for a run is dropped when the run
ends, whether it succeeded or failed.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from justly.errors import JustlyError, RecipeError, SubprocessFailure
from justly.evaluator import Evaluator
from justly.models import (
    CommandSpec,
    InvocationContext,
    InvocationState,
    Justfile,
    Recipe,
)
from justly.observability import StructuredLogger
from justly.runners import ProcessRunner, SubprocessRunner


def _echo_to_stderr(text: str) -> None:
    print(text, file=sys.stderr, flush=True)


@dataclass(frozen=True, slots=True)
class PlannedRecipe:
    recipe: Recipe
    arguments: tuple[str, ...] = ()


@dataclass(slots=True)
class Executor:
    """Runs one target recipe, and its dependencies, for a parsed justfile."""

    justfile: Justfile
    runner: ProcessRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    environ: Mapping[str, str] | None = None
    overrides: Mapping[str, str] = field(default_factory=dict)
    executable: str = "justly"
    working_directory: Path | None = None
    invocation_directory: Path | None = None
    dry_run: bool = False
    echo: Callable[[str], None] = _echo_to_stderr
    state: InvocationState = field(init=False, default="idle")
    current_recipe: str | None = field(init=False, default=None)
    context: InvocationContext | None = field(init=False, default=None, repr=False)

    def plan(self, target: str, arguments: Sequence[str] = ()) -> tuple[PlannedRecipe, ...]:
        """Order the target after its dependencies, each recipe at most once."""
        recipe = self._require(target, referrer=None)
        self._check_arguments(recipe, tuple(arguments))

        ordered: list[PlannedRecipe] = []
        seen: set[str] = set()

        def visit(current: Recipe, args: tuple[str, ...], stack: tuple[str, ...]) -> None:
            if current.name in stack:
                cycle = " -> ".join((*stack[stack.index(current.name):], current.name))
                raise RecipeError(
                    f"Recipe `{current.name}` depends on itself.",
                    context={"cycle": cycle},
                )
            if current.name in seen:
                return
            for dependency_name in current.dependencies:
                dependency = self._require(dependency_name, referrer=current.name)
                if dependency.min_arguments():
                    raise RecipeError(
                        f"Dependency `{dependency_name}` of `{current.name}` requires arguments.",
                        hint="Dependencies are run without arguments; give its parameters defaults.",
                        context={"recipe": current.name, "dependency": dependency_name},
                    )
                visit(dependency, (), (*stack, current.name))
            if not current.body:
                raise RecipeError(
                    f"Recipe `{current.name}` has no body.",
                    hint="Add at least one indented command line under the header.",
                    context={"recipe": current.name, "line": str(current.line)},
                )
            seen.add(current.name)
            ordered.append(PlannedRecipe(recipe=current, arguments=args))

        visit(recipe, tuple(arguments), ())
        self.logger.log(
            operation="plan",
            recipe=target,
            message="Planned " + ", ".join(item.recipe.name for item in ordered) + ".",
        )
        return tuple(ordered)

    def commands(self, target: str, arguments: Sequence[str] = ()) -> tuple[CommandSpec, ...]:
        """Resolve variables and render every command line of the plan."""
        planned = self.plan(target, arguments)
        settings = self.justfile.settings
        evaluator = Evaluator(
            self.justfile,
            environ=self.environ,
            overrides=self.overrides,
            executable=self.executable,
            invocation_directory=self.invocation_directory,
        )
        self.context = InvocationContext.build(
            settings=settings,
            environment=evaluator.environment(),
            arguments=tuple(arguments),
            justfile=self.justfile.path,
            working_directory=self.working_directory,
            executable=self.executable,
        )
        self.logger.log(
            operation="resolve",
            recipe=target,
            message=f"Resolved {len(self.justfile.assignments)} variable(s).",
        )

        rendered: list[CommandSpec] = []
        for item in planned:
            recipe = item.recipe
            scope = self._bind(recipe, item.arguments, evaluator)
            env: Mapping[str, str] = self.context.environment
            if settings.export:
                env = MappingProxyType({**env, **scope})
            positional = (recipe.name, *item.arguments)
            for line in recipe.body:
                text = evaluator.evaluate_line(line, scope, positional)
                quiet = recipe.quiet
                if line.literal_prefix().startswith("@"):
                    text = text[1:]
                    quiet = not quiet
                argv = (*settings.shell, text)
                if settings.positional_arguments:
                    argv = (*argv, *positional)
                rendered.append(
                    CommandSpec(
                        argv=argv,
                        env=env,
                        cwd=self.context.working_directory,
                        recipe=recipe.name,
                        line=line.number,
                        command=text,
                        echo=not quiet,
                    )
                )
        return tuple(rendered)

    def run(self, target: str, arguments: Sequence[str] = ()) -> tuple[CommandSpec, ...]:
        self.state = "resolving"
        try:
            commands = self.commands(target, arguments)
            self.state = "executing"
            for command in commands:
                self._execute(command)
        except (JustlyError, KeyboardInterrupt) as exc:
            self.state = "failed"
            self.logger.log(
                operation="run",
                recipe=self.current_recipe or target,
                message=str(exc) or type(exc).__name__,
                level="error",
            )
            raise
        finally:
            self.context = None
        self.state = "done"
        self.current_recipe = None
        return commands

    def _execute(self, command: CommandSpec) -> None:
        self.current_recipe = command.recipe
        if command.echo or self.dry_run:
            self.echo(command.command)
        if self.dry_run:
            return

        self.logger.log(
            operation="execute",
            recipe=command.recipe,
            line=command.line,
            message="Running command line.",
            extra={"runner": self.runner.name},
        )
        returncode = self.runner.run(command)
        if returncode != 0:
            raise SubprocessFailure(
                f"Recipe `{command.recipe}` failed on line {command.line} "
                f"with exit code {returncode}.",
                returncode=returncode,
                context={"recipe": command.recipe, "command": command.command},
            )

    def _require(self, name: str, *, referrer: str | None) -> Recipe:
        recipe = self.justfile.recipe(name)
        if recipe is not None:
            return recipe
        if referrer is None:
            raise RecipeError(
                f"Justfile does not contain recipe `{name}`.",
                hint="Run with --list to see available recipes.",
                context={"path": str(self.justfile.path)},
            )
        raise RecipeError(
            f"Recipe `{referrer}` depends on unknown recipe `{name}`.",
            context={"recipe": referrer, "dependency": name},
        )

    def _check_arguments(self, recipe: Recipe, arguments: tuple[str, ...]) -> None:
        minimum = recipe.min_arguments()
        maximum = recipe.max_arguments()
        if len(arguments) >= minimum and (maximum is None or len(arguments) <= maximum):
            return
        if maximum is None:
            expected = f"at least {minimum}"
        elif minimum == maximum:
            expected = str(minimum)
        else:
            expected = f"{minimum} to {maximum}"
        raise RecipeError(
            f"Recipe `{recipe.name}` got {len(arguments)} argument(s) but takes {expected}.",
            hint="Usage: " + " ".join([recipe.name, *(p.name for p in recipe.parameters)]),
            context={"recipe": recipe.name},
        )

    def _bind(
        self,
        recipe: Recipe,
        arguments: tuple[str, ...],
        evaluator: Evaluator,
    ) -> dict[str, str]:
        scope: dict[str, str] = {}
        remaining = list(arguments)
        for parameter in recipe.parameters:
            if parameter.variadic and remaining:
                scope[parameter.name] = " ".join(remaining)
                remaining = []
            elif not parameter.variadic and remaining:
                scope[parameter.name] = remaining.pop(0)
            elif parameter.default is not None:
                scope[parameter.name] = evaluator.evaluate_expression(parameter.default, scope)
            else:
                scope[parameter.name] = ""
        return scope


__all__ = ["Executor", "PlannedRecipe"]
