"""Recipe listing and summary rendering."""

from __future__ import annotations

import json

from justly.models import (
    Call,
    Concat,
    Expression,
    Join,
    Justfile,
    Parameter,
    Positional,
    Recipe,
    StringLiteral,
    Variable,
)

LIST_HEADING = "Available recipes:"
LIST_INDENT = "    "


def list_recipes(justfile: Justfile) -> list[str]:
    """Return non-hidden recipe names in declaration order."""
    return [name for name, recipe in justfile.recipes.items() if not recipe.private]


def render_expression(expression: Expression) -> str:
    if isinstance(expression, StringLiteral):
        if "'" not in expression.value and "\n" not in expression.value:
            return f"'{expression.value}'"
        return json.dumps(expression.value, ensure_ascii=False)
    if isinstance(expression, Variable):
        return expression.name
    if isinstance(expression, Positional):
        return str(expression.index)
    if isinstance(expression, Call):
        return f"{expression.name}(" + ", ".join(render_expression(arg) for arg in expression.args) + ")"
    if isinstance(expression, Concat):
        return f"{render_expression(expression.lhs)} + {render_expression(expression.rhs)}"
    if isinstance(expression, Join):
        return f"{render_expression(expression.lhs)} / {render_expression(expression.rhs)}"
    raise TypeError(f"Unsupported expression: {expression!r}")


def render_parameter(parameter: Parameter) -> str:
    prefix = {"single": "", "plus": "+", "star": "*"}[parameter.kind]
    text = prefix + parameter.name
    if parameter.default is not None:
        default = render_expression(parameter.default)
        if not isinstance(parameter.default, (StringLiteral, Variable)):
            default = f"({default})"
        text += "=" + default
    return text


def render_signature(recipe: Recipe) -> str:
    return " ".join([recipe.name, *(render_parameter(p) for p in recipe.parameters)])


def format_list(justfile: Justfile) -> str:
    visible = [justfile.recipes[name] for name in list_recipes(justfile)]
    signatures = [render_signature(recipe) for recipe in visible]
    width = max((len(signature) for signature in signatures), default=0)
    lines = [LIST_HEADING]
    for recipe, signature in zip(visible, signatures):
        if recipe.doc:
            lines.append(f"{LIST_INDENT}{signature.ljust(width)} # {recipe.doc}")
        else:
            lines.append(f"{LIST_INDENT}{signature}")
    return "\n".join(lines) + "\n"


def format_summary(justfile: Justfile) -> str:
    return " ".join(list_recipes(justfile)) + "\n"


__all__ = [
    "format_list",
    "format_summary",
    "list_recipes",
    "render_expression",
    "render_parameter",
    "render_signature",
]
