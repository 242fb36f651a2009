"""Command-line entry point.

Usage:
    justly                       list recipes
    justly RECIPE [ARGS...]      run a recipe after its dependencies
    justly NAME=VALUE RECIPE     override a variable for this run
"""

from __future__ import annotations

import argparse
import re
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path

from justly.discovery import find_justfile
from justly.dump import to_cbor, to_json
from justly.errors import JustlyError
from justly.evaluator import Evaluator
from justly.executor import Executor
from justly.listing import format_list, format_summary
from justly.models import Justfile
from justly.observability import StructuredLogger
from justly.parser import read_justfile
from justly.runners import ProcessRunner, SubprocessRunner

EXIT_INTERRUPTED = 130

_OVERRIDE_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_-]*)=(?P<value>.*)$", re.DOTALL)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="justly", description="Run recipes from a justfile.")
    parser.add_argument("-f", "--justfile", help="Use this justfile instead of searching for one")
    parser.add_argument(
        "-d",
        "--working-directory",
        help="Run recipes in this directory instead of the justfile's directory",
    )
    parser.add_argument("-l", "--list", action="store_true", help="List available recipes")
    parser.add_argument("--summary", action="store_true", help="List recipe names on one line")
    parser.add_argument("--evaluate", action="store_true", help="Print every variable's value")
    parser.add_argument("--variables", action="store_true", help="List variable names")
    parser.add_argument("--dump", action="store_true", help="Print the parsed justfile")
    parser.add_argument("--dump-format", choices=["json", "cbor"], default="json")
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print command lines without running them",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Do not echo command lines")
    parser.add_argument(
        "--set",
        nargs=2,
        action="append",
        metavar=("NAME", "VALUE"),
        default=[],
        help="Override a variable",
    )
    parser.add_argument("--log-file", help="Write structured JSON-lines logs to this path")
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help="[NAME=VALUE...] [RECIPE [ARGS...]]")
    return parser


def split_overrides(arguments: Sequence[str]) -> tuple[dict[str, str], list[str]]:
    """Split leading ``NAME=VALUE`` overrides from the recipe and its arguments."""
    overrides: dict[str, str] = {}
    index = 0
    while index < len(arguments):
        match = _OVERRIDE_RE.match(arguments[index])
        if match is None:
            break
        overrides[match.group("name")] = match.group("value")
        index += 1
    return overrides, list(arguments[index:])


def current_executable() -> str:
    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if argv0 is not None and argv0.name != "__main__.py" and argv0.is_file():
        return str(argv0.resolve())
    return shutil.which("justly") or "justly"


def main(argv: Sequence[str] | None = None, *, runner: ProcessRunner | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = StructuredLogger()
    try:
        return _run(args, logger, runner or SubprocessRunner())
    except JustlyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    except KeyboardInterrupt:
        print("error: interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        if args.log_file:
            logger.to_json_lines(args.log_file)


def _run(args: argparse.Namespace, logger: StructuredLogger, runner: ProcessRunner) -> int:
    invocation_directory = Path.cwd()
    path = Path(args.justfile) if args.justfile else find_justfile(invocation_directory)
    justfile = read_justfile(path.resolve())
    logger.log(
        operation="parse",
        recipe=None,
        message=f"Parsed {len(justfile.recipes)} recipe(s).",
        extra={"path": str(justfile.path)},
    )

    overrides, rest = split_overrides(args.arguments)
    overrides = {**dict(args.set), **overrides}

    if args.dump:
        _dump(justfile, args.dump_format)
        return 0
    if args.evaluate or args.variables:
        _print_variables(justfile, overrides, invocation_directory, values=args.evaluate)
        return 0
    if args.summary:
        sys.stdout.write(format_summary(justfile))
        return 0
    if args.list or not rest:
        sys.stdout.write(format_list(justfile))
        return 0

    recipe, *recipe_arguments = rest
    working_directory = Path(args.working_directory).resolve() if args.working_directory else None
    executor = Executor(
        justfile,
        runner=runner,
        logger=logger,
        overrides=overrides,
        executable=current_executable(),
        working_directory=working_directory,
        invocation_directory=invocation_directory,
        dry_run=args.dry_run,
    )
    if args.quiet:
        executor.echo = lambda _text: None
    executor.run(recipe, recipe_arguments)
    return 0


def _dump(justfile: Justfile, dump_format: str) -> None:
    if dump_format == "cbor":
        sys.stdout.buffer.write(to_cbor(justfile))
        sys.stdout.buffer.flush()
    else:
        sys.stdout.write(to_json(justfile))


def _print_variables(
    justfile: Justfile,
    overrides: dict[str, str],
    invocation_directory: Path,
    *,
    values: bool,
) -> None:
    if not values:
        print(" ".join(justfile.assignments))
        return
    evaluator = Evaluator(
        justfile,
        overrides=overrides,
        executable=current_executable(),
        invocation_directory=invocation_directory,
    )
    resolved = evaluator.evaluate_all()
    width = max((len(name) for name in resolved), default=0)
    for name, value in resolved.items():
        print(f'{name.ljust(width)} := "{value}"')


if __name__ == "__main__":
    raise SystemExit(main())
