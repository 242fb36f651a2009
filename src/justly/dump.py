"""Stable JSON and CBOR export of a parsed justfile."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import cbor2

from justly.listing import render_expression
from justly.models import Justfile, Line, Recipe

SCHEMA_VERSION = 1


def justfile_payload(justfile: Justfile) -> dict[str, Any]:
    settings = justfile.settings
    return {
        "schema_version": SCHEMA_VERSION,
        "path": str(justfile.path),
        "settings": {
            "export": settings.export,
            "ignore-comments": settings.ignore_comments,
            "positional-arguments": settings.positional_arguments,
            "shell": list(settings.shell),
        },
        "assignments": {
            name: {
                "expression": render_expression(assignment.expression),
                "export": assignment.exported,
            }
            for name, assignment in justfile.assignments.items()
        },
        "recipes": {name: _recipe_payload(recipe) for name, recipe in justfile.recipes.items()},
    }


def to_json(justfile: Justfile, path: str | Path | None = None) -> str:
    encoded = json.dumps(justfile_payload(justfile), indent=2, sort_keys=True) + "\n"
    if path is not None:
        Path(path).write_text(encoded, encoding="utf-8")
    return encoded


def to_cbor(justfile: Justfile, path: str | Path | None = None) -> bytes:
    encoded = cbor2.dumps(justfile_payload(justfile), canonical=True)
    if path is not None:
        Path(path).write_bytes(encoded)
    return encoded


def _recipe_payload(recipe: Recipe) -> dict[str, Any]:
    return {
        "name": recipe.name,
        "private": recipe.private,
        "quiet": recipe.quiet,
        "doc": recipe.doc,
        "dependencies": list(recipe.dependencies),
        "parameters": [
            {
                "name": parameter.name,
                "kind": parameter.kind,
                "default": (
                    render_expression(parameter.default) if parameter.default is not None else None
                ),
            }
            for parameter in recipe.parameters
        ],
        "body": [_line_source(line) for line in recipe.body],
    }


def _line_source(line: Line) -> str:
    parts: list[str] = []
    for fragment in line.fragments:
        if isinstance(fragment, str):
            parts.append(fragment.replace("{{", "{{{{"))
        else:
            parts.append("{{ " + render_expression(fragment) + " }}")
    return "".join(parts)


__all__ = ["SCHEMA_VERSION", "justfile_payload", "to_cbor", "to_json"]
