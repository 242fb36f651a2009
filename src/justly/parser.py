"""Justfile parser.

Turns recipe-file text into a :class:`~justly.models.Justfile`. The format is
line oriented:

- ``set <key> := <value>`` (or bare ``set <key>`` for booleans)
- ``[export] <name> := <expression>``
- ``[@]<name> [params...]: [dependencies...]`` recipe headers
- indented body lines, one shell command each, with ``{{ expression }}``
  interpolation and an optional ``@`` prefix that suppresses echo
- ``#`` comment lines; a comment directly above a recipe header becomes its doc

Body comment lines are only dropped when ``set ignore-comments`` is enabled,
so bodies are finalized after the whole file (and every setting) is read.
"""

from __future__ import annotations

import re
import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from justly.errors import JustfileSyntaxError
from justly.functions import get_builtin
from justly.models import (
    SETTING_FIELDS,
    Assignment,
    Call,
    Concat,
    Expression,
    Fragment,
    Join,
    Justfile,
    Line,
    Parameter,
    ParameterKind,
    Positional,
    Recipe,
    Settings,
    StringLiteral,
    Variable,
)

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>[ \t]+)
    | (?P<comment>\#.*)
    | (?P<interp_end>\}\})
    | (?P<assign>:=)
    | (?P<string>'[^']*'|"(?:[^"\\]|\\.)*")
    | (?P<unterminated>['"])
    | (?P<number>\d+)
    | (?P<name>[A-Za-z_][A-Za-z0-9_-]*)
    | (?P<punct>[:()\[\],+/*=@])
    """,
    re.VERBOSE,
)

_SETTING_LINE_RE = re.compile(r"^set\s+[A-Za-z_]")
_ASSIGNMENT_LINE_RE = re.compile(
    r"^(?P<export>export\s+)?(?P<name>[A-Za-z_][A-Za-z0-9_-]*)\s*:=(?P<expression>.*)$"
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    value: str
    column: int


def _syntax_error(message: str, number: int, text: str, *, hint: str | None = None) -> JustfileSyntaxError:
    return JustfileSyntaxError(
        message,
        hint=hint,
        context={"line": str(number), "text": text.rstrip("\n")},
    )


def tokenize(
    text: str,
    number: int,
    *,
    start: int = 0,
    interpolation: bool = False,
) -> tuple[list[Token], int]:
    """Tokenize *text* from *start*.

    Inside an interpolation, scanning stops after the closing ``}}`` and the
    returned offset points just past it. Outside, scanning stops at a comment.
    """
    tokens: list[Token] = []
    pos = start
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise _syntax_error(f"Unexpected character {text[pos]!r}.", number, text)
        kind = match.lastgroup or ""
        value = match.group()
        if kind == "unterminated":
            raise _syntax_error("Unterminated string literal.", number, text)
        if kind == "comment":
            if interpolation:
                raise _syntax_error("Comments are not allowed inside interpolations.", number, text)
            return tokens, len(text)
        if kind == "interp_end":
            if not interpolation:
                raise _syntax_error("Unexpected `}}`.", number, text)
            return tokens, match.end()
        if kind != "ws":
            tokens.append(Token(kind=kind if kind != "punct" else value, value=value, column=pos))
        pos = match.end()
    if interpolation:
        raise _syntax_error(
            "Unterminated interpolation.",
            number,
            text,
            hint="Close the interpolation with `}}`; write `{{{{` for a literal `{{`.",
        )
    return tokens, pos


def _unquote(raw: str, number: int, text: str) -> str:
    if raw.startswith("'"):
        return raw[1:-1]
    body = raw[1:-1]
    out: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\":
            escaped = body[index + 1]
            if escaped not in _ESCAPES:
                raise _syntax_error(f"Unknown escape sequence `\\{escaped}`.", number, text)
            out.append(_ESCAPES[escaped])
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


class _TokenStream:
    def __init__(self, tokens: list[Token], number: int, text: str) -> None:
        self.tokens = tokens
        self.index = 0
        self.number = number
        self.text = text

    def peek(self) -> Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def at(self, kind: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == kind

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise self.error("Unexpected end of line.")
        self.index += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.next()
        if token.kind != kind:
            raise self.error(f"Expected `{kind}`, found `{token.value}`.")
        return token

    def done(self) -> bool:
        return self.index >= len(self.tokens)

    def expect_done(self) -> None:
        token = self.peek()
        if token is not None:
            raise self.error(f"Unexpected `{token.value}`.")

    def error(self, message: str, *, hint: str | None = None) -> JustfileSyntaxError:
        return _syntax_error(message, self.number, self.text, hint=hint)


def _parse_expression(stream: _TokenStream, *, allow_positional: bool) -> Expression:
    expression = _parse_term(stream, allow_positional=allow_positional)
    while stream.at("+") or stream.at("/"):
        operator = stream.next().kind
        rhs = _parse_term(stream, allow_positional=allow_positional)
        expression = Concat(expression, rhs) if operator == "+" else Join(expression, rhs)
    return expression


def _parse_term(stream: _TokenStream, *, allow_positional: bool) -> Expression:
    token = stream.next()
    if token.kind == "string":
        return StringLiteral(_unquote(token.value, stream.number, stream.text))
    if token.kind == "number":
        if not allow_positional:
            raise stream.error(
                "Positional references are only valid in recipe bodies.",
                hint="Quote the number to use it as a string.",
            )
        return Positional(int(token.value))
    if token.kind == "(":
        inner = _parse_expression(stream, allow_positional=allow_positional)
        stream.expect(")")
        return inner
    if token.kind == "name":
        if stream.at("("):
            return _parse_call(token.value, stream, allow_positional=allow_positional)
        return Variable(token.value)
    raise stream.error(f"Expected an expression, found `{token.value}`.")


def _parse_call(name: str, stream: _TokenStream, *, allow_positional: bool) -> Call:
    stream.expect("(")
    args: list[Expression] = []
    while not stream.at(")"):
        args.append(_parse_expression(stream, allow_positional=allow_positional))
        if not stream.at(")"):
            stream.expect(",")
    stream.expect(")")

    builtin = get_builtin(name)
    if builtin is None:
        raise stream.error(f"Unknown function `{name}`.")
    if not builtin.accepts(len(args)):
        expected = (
            str(builtin.min_args)
            if builtin.min_args == builtin.max_args
            else f"{builtin.min_args}-{builtin.max_args}"
        )
        raise stream.error(
            f"Function `{name}` called with {len(args)} argument(s), expected {expected}."
        )
    return Call(name, tuple(args))


def parse_expression(text: str, *, number: int = 0) -> Expression:
    """Parse a standalone expression such as the right-hand side of an assignment."""
    tokens, _ = tokenize(text, number)
    stream = _TokenStream(tokens, number, text)
    if stream.done():
        raise stream.error("Expected an expression.")
    expression = _parse_expression(stream, allow_positional=False)
    stream.expect_done()
    return expression


def parse_line_fragments(text: str, number: int = 0) -> tuple[Fragment, ...]:
    """Split a body line into literal text and ``{{ expression }}`` fragments."""
    fragments: list[Fragment] = []
    literal: list[str] = []
    pos = 0
    while pos < len(text):
        if text.startswith("{{{{", pos):
            literal.append("{{")
            pos += 4
            continue
        if text.startswith("{{", pos):
            tokens, end = tokenize(text, number, start=pos + 2, interpolation=True)
            stream = _TokenStream(tokens, number, text)
            if stream.done():
                raise stream.error("Empty interpolation.")
            expression = _parse_expression(stream, allow_positional=True)
            stream.expect_done()
            if literal:
                fragments.append("".join(literal))
                literal = []
            fragments.append(expression)
            pos = end
            continue
        literal.append(text[pos])
        pos += 1
    if literal:
        fragments.append("".join(literal))
    return tuple(fragments)


@dataclass(slots=True)
class _PendingRecipe:
    name: str
    parameters: tuple[Parameter, ...]
    dependencies: tuple[str, ...]
    quiet: bool
    doc: str | None
    line: int
    indent: str | None = None
    body: list[tuple[int, str]] = field(default_factory=list)


class JustfileParser:
    """Single-use parser for one justfile's text."""

    def __init__(self, text: str, path: Path) -> None:
        self.text = text
        self.path = path
        self._settings: dict[str, object] = {}
        self._assignments: dict[str, Assignment] = {}
        self._recipes: dict[str, _PendingRecipe] = {}
        self._current: _PendingRecipe | None = None
        self._doc: str | None = None

    def parse(self) -> Justfile:
        lines = self.text.splitlines()
        index = 0
        while index < len(lines):
            number = index + 1
            raw = lines[index]
            index += 1

            if not raw.strip():
                self._doc = None
                continue

            if raw[:1] in (" ", "\t"):
                if self._current is None:
                    raise _syntax_error(
                        "Indented line outside of a recipe.",
                        number,
                        raw,
                        hint="Body lines must follow a recipe header.",
                    )
                # Join continuation lines ending with a backslash.
                while raw.endswith("\\") and index < len(lines):
                    raw = raw + "\n" + lines[index].lstrip(" \t")
                    index += 1
                self._add_body_line(number, raw)
                continue

            self._current = None
            stripped = raw.strip()
            if stripped.startswith("#"):
                self._doc = None if stripped.startswith("#!") else stripped[1:].strip() or None
                continue

            if _SETTING_LINE_RE.match(stripped):
                self._parse_setting(number, stripped)
            elif _ASSIGNMENT_LINE_RE.match(stripped):
                self._parse_assignment(number, stripped)
            else:
                self._parse_header(number, stripped)
            self._doc = None

        settings = self._build_settings()
        recipes = {
            name: self._finalize_recipe(pending, settings)
            for name, pending in self._recipes.items()
        }
        return Justfile(
            path=self.path,
            settings=settings,
            assignments=dict(self._assignments),
            recipes=recipes,
        )

    def _parse_setting(self, number: int, text: str) -> None:
        tokens, _ = tokenize(text, number)
        stream = _TokenStream(tokens, number, text)
        stream.expect("name")
        key = stream.expect("name").value
        if key not in SETTING_FIELDS:
            raise stream.error(
                f"Unknown setting `{key}`.",
                hint="Known settings: " + ", ".join(sorted(SETTING_FIELDS)) + ".",
            )
        if key in self._settings:
            raise stream.error(f"Setting `{key}` is set more than once.")

        if stream.done():
            value: object = True
        else:
            stream.expect("assign")
            value = self._parse_setting_value(stream)
            stream.expect_done()

        if key == "shell":
            if not isinstance(value, tuple) or not value:
                raise stream.error("Setting `shell` expects a non-empty list of strings.")
        elif not isinstance(value, bool):
            raise stream.error(f"Setting `{key}` expects `true` or `false`.")
        self._settings[key] = value

    def _parse_setting_value(self, stream: _TokenStream) -> object:
        token = stream.next()
        if token.kind == "name" and token.value in ("true", "false"):
            return token.value == "true"
        if token.kind == "[":
            items: list[str] = []
            while not stream.at("]"):
                item = stream.expect("string")
                items.append(_unquote(item.value, stream.number, stream.text))
                if not stream.at("]"):
                    stream.expect(",")
            stream.expect("]")
            return tuple(items)
        raise stream.error(f"Invalid setting value `{token.value}`.")

    def _parse_assignment(self, number: int, text: str) -> None:
        match = _ASSIGNMENT_LINE_RE.match(text)
        assert match is not None
        name = match.group("name")
        if name in self._assignments:
            raise _syntax_error(f"Variable `{name}` is assigned more than once.", number, text)
        expression = parse_expression(match.group("expression"), number=number)
        self._assignments[name] = Assignment(
            name=name,
            expression=expression,
            exported=match.group("export") is not None,
            line=number,
        )

    def _parse_header(self, number: int, text: str) -> None:
        tokens, _ = tokenize(text, number)
        stream = _TokenStream(tokens, number, text)
        quiet = False
        if stream.at("@"):
            stream.next()
            quiet = True
        head = stream.next()
        if head.kind != "name":
            raise stream.error(
                f"Unrecognized line starting with `{head.value}`.",
                hint="Expected a setting, assignment, or recipe header.",
            )
        name = head.value
        if name in self._recipes:
            raise stream.error(f"Recipe `{name}` is defined more than once.")

        parameters = self._parse_parameters(stream)
        stream.expect(":")

        dependencies: list[str] = []
        while not stream.done():
            dependency = stream.expect("name").value
            if dependency in dependencies:
                warnings.warn(
                    f"Recipe `{name}` lists dependency `{dependency}` more than once; "
                    "the duplicate is ignored.",
                    stacklevel=2,
                )
                continue
            dependencies.append(dependency)

        pending = _PendingRecipe(
            name=name,
            parameters=parameters,
            dependencies=tuple(dependencies),
            quiet=quiet,
            doc=self._doc,
            line=number,
        )
        self._recipes[name] = pending
        self._current = pending

    def _parse_parameters(self, stream: _TokenStream) -> tuple[Parameter, ...]:
        parameters: list[Parameter] = []
        seen: set[str] = set()
        while not stream.at(":"):
            kind: ParameterKind = "single"
            if stream.at("+") or stream.at("*"):
                kind = "plus" if stream.next().kind == "+" else "star"
            name = stream.expect("name").value
            default: Expression | None = None
            if stream.at("="):
                stream.next()
                default = _parse_term(stream, allow_positional=False)

            if name in seen:
                raise stream.error(f"Parameter `{name}` is declared more than once.")
            if parameters and parameters[-1].variadic:
                raise stream.error("A variadic parameter must be the last parameter.")
            if kind == "single" and default is None and any(p.default is not None for p in parameters):
                raise stream.error(
                    f"Parameter `{name}` without a default follows a parameter with one."
                )
            seen.add(name)
            parameters.append(Parameter(name=name, default=default, kind=kind))
        return tuple(parameters)

    def _add_body_line(self, number: int, raw: str) -> None:
        recipe = self._current
        assert recipe is not None
        if recipe.indent is None:
            recipe.indent = raw[: len(raw) - len(raw.lstrip(" \t"))]
        elif not raw.startswith(recipe.indent):
            raise _syntax_error(
                "Inconsistent indentation in recipe body.",
                number,
                raw,
                hint="Indent every body line with the same whitespace as the first.",
            )
        recipe.body.append((number, raw[len(recipe.indent):]))

    def _build_settings(self) -> Settings:
        values = {SETTING_FIELDS[key]: value for key, value in self._settings.items()}
        return Settings(**values)  # type: ignore[arg-type]

    def _finalize_recipe(self, pending: _PendingRecipe, settings: Settings) -> Recipe:
        body: list[Line] = []
        for number, text in pending.body:
            if settings.ignore_comments and text.lstrip(" \t@").startswith("#"):
                continue
            body.append(Line(fragments=parse_line_fragments(text, number), number=number))
        return Recipe(
            name=pending.name,
            parameters=pending.parameters,
            dependencies=pending.dependencies,
            body=tuple(body),
            quiet=pending.quiet,
            doc=pending.doc,
            line=pending.line,
        )


def parse_justfile(text: str, path: str | Path = "justfile") -> Justfile:
    return JustfileParser(text, Path(path)).parse()


def read_justfile(
    path: str | Path,
    *,
    read: Callable[[Path], str] | None = None,
) -> Justfile:
    justfile_path = Path(path)
    try:
        text = read(justfile_path) if read else justfile_path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise JustfileSyntaxError(
            "Justfile does not exist.",
            hint="Pass --justfile or run from a directory containing a justfile.",
            context={"path": str(justfile_path)},
        ) from exc
    except UnicodeDecodeError as exc:
        raise JustfileSyntaxError(
            "Justfile is not valid UTF-8.",
            hint=str(exc),
            context={"path": str(justfile_path)},
        ) from exc
    return parse_justfile(text, justfile_path)


__all__ = [
    "JustfileParser",
    "Token",
    "parse_expression",
    "parse_justfile",
    "parse_line_fragments",
    "read_justfile",
    "tokenize",
]
