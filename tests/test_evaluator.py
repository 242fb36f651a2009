import textwrap
from pathlib import Path

import pytest

from justly.errors import CyclicReferenceError, EnvironmentVariableError, UnresolvedReferenceError
from justly.evaluator import Evaluator
from justly.parser import parse_justfile


def _justfile(text: str):
    return parse_justfile(textwrap.dedent(text).lstrip("\n"), Path("/project/justfile"))


def test_env_builtin_falls_back_to_default() -> None:
    justfile = _justfile('CARGO := env("CARGO", "cargo")\n')

    assert Evaluator(justfile, environ={}).evaluate("CARGO") == "cargo"


def test_env_builtin_reads_ambient_environment() -> None:
    justfile = _justfile('CARGO := env("CARGO", "cargo")\n')
    evaluator = Evaluator(justfile, environ={"CARGO": "/usr/local/bin/cargo"})

    assert evaluator.evaluate("CARGO") == "/usr/local/bin/cargo"


def test_env_var_reports_missing_variable_as_environment_error() -> None:
    justfile = _justfile('HOME_DIR := env_var("HOME_DIR")\n')

    with pytest.raises(EnvironmentVariableError, match="HOME_DIR") as excinfo:
        Evaluator(justfile, environ={}).evaluate("HOME_DIR")
    assert not isinstance(excinfo.value, UnresolvedReferenceError)
    assert excinfo.value.variable == "HOME_DIR"


def test_chain_of_defined_names_and_builtins_resolves_with_empty_environment() -> None:
    justfile = _justfile(
        """
        base := env("NOT_SET_ANYWHERE", "fallback")
        tool := env_var_or_default("ALSO_NOT_SET", base)
        root := justfile_directory() / tool
        shout := uppercase(trim("  " + root + "  "))
        """
    )

    resolved = Evaluator(justfile, environ={}).evaluate_all()

    assert resolved["tool"] == "fallback"
    assert resolved["shout"] == "/PROJECT/FALLBACK"


def test_quote_and_path_builtins() -> None:
    justfile = _justfile(
        """
        _just := quote(just_executable()) + " --justfile=" + quote(justfile())
        tricky := quote("it's")
        here := justfile_directory()
        """
    )
    evaluator = Evaluator(justfile, environ={}, executable="/opt/bin/justly")

    assert evaluator.evaluate("_just") == "'/opt/bin/justly' --justfile='/project/justfile'"
    assert evaluator.evaluate("tricky") == "'it'\\''s'"
    assert evaluator.evaluate("here") == "/project"


def test_references_to_earlier_and_later_variables_resolve() -> None:
    justfile = _justfile(
        """
        base := "target"
        out := base / "release" + suffix
        suffix := "-x"
        """
    )
    values = Evaluator(justfile, environ={}).evaluate_all()

    assert values == {"base": "target", "out": "target/release-x", "suffix": "-x"}
    assert list(values) == ["base", "out", "suffix"]


def test_evaluation_is_memoized() -> None:
    justfile = _justfile('a := "1"\nb := a + a\n')
    evaluator = Evaluator(justfile, environ={})

    assert evaluator.evaluate("b") == "11"
    assert evaluator.evaluate("b") is evaluator.evaluate("b")


def test_self_reference_is_cyclic() -> None:
    justfile = _justfile("a := a\n")

    with pytest.raises(CyclicReferenceError) as excinfo:
        Evaluator(justfile, environ={}).evaluate("a")
    assert excinfo.value.cycle == ("a", "a")
    assert excinfo.value.code == "E_CYCLIC_REFERENCE"


@pytest.mark.parametrize("length", [2, 3, 5])
def test_reference_chains_that_loop_are_cyclic(length: int) -> None:
    names = [f"v{index}" for index in range(length)]
    lines = [f"{name} := {names[(index + 1) % length]}" for index, name in enumerate(names)]
    justfile = _justfile("\n".join(lines) + "\n")

    with pytest.raises(CyclicReferenceError) as excinfo:
        Evaluator(justfile, environ={}).evaluate_all()
    assert excinfo.value.cycle[0] == excinfo.value.cycle[-1]
    assert len(excinfo.value.cycle) == length + 1


def test_unknown_variable_is_unresolved() -> None:
    justfile = _justfile("a := missing\n")

    with pytest.raises(UnresolvedReferenceError, match="missing"):
        Evaluator(justfile, environ={}).evaluate("a")


def test_export_setting_exports_in_definition_order() -> None:
    justfile = _justfile(
        """
        set export
        FIRST := "one"
        SECOND := env("FIRST", "unset") + "-two"
        """
    )
    environment = Evaluator(justfile, environ={"PATH": "/bin"}).environment()

    assert environment["FIRST"] == "one"
    assert environment["SECOND"] == "one-two"
    assert environment["PATH"] == "/bin"


def test_without_export_only_prefixed_assignments_are_exported() -> None:
    justfile = _justfile(
        """
        export TOKEN := "abc"
        local := "hidden"
        """
    )
    environment = Evaluator(justfile, environ={}).environment()

    assert dict(environment) == {"TOKEN": "abc"}


def test_environment_is_read_only() -> None:
    justfile = _justfile("set export\nA := 'x'\n")
    environment = Evaluator(justfile, environ={}).environment()

    with pytest.raises(TypeError):
        environment["A"] = "y"  # type: ignore[index]


def test_overrides_replace_assignments() -> None:
    justfile = _justfile('mode := "debug"\nflag := "--" + mode\n')
    evaluator = Evaluator(justfile, environ={}, overrides={"mode": "release"})

    assert evaluator.evaluate("flag") == "--release"


def test_override_of_unknown_variable_is_rejected() -> None:
    justfile = _justfile('mode := "debug"\n')

    with pytest.raises(UnresolvedReferenceError, match="overridden"):
        Evaluator(justfile, environ={}, overrides={"nope": "1"})


def test_line_evaluation_uses_scope_and_positionals() -> None:
    justfile = _justfile(
        """
        greeting := "hello"
        say name:
            echo {{ greeting }} {{ name }} {{ 1 }} {{ uppercase(0) }}
        """
    )
    evaluator = Evaluator(justfile, environ={})
    line = justfile.recipes["say"].body[0]

    rendered = evaluator.evaluate_line(line, {"name": "world"}, ("say", "world"))

    assert rendered == "echo hello world world SAY"


def test_missing_positional_is_unresolved() -> None:
    justfile = _justfile("show:\n    echo {{ 2 }}\n")
    evaluator = Evaluator(justfile, environ={})

    with pytest.raises(UnresolvedReferenceError, match="Positional argument 2"):
        evaluator.evaluate_line(justfile.recipes["show"].body[0], {}, ("show",))
