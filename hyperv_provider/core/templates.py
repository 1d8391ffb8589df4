"""PowerShell script templates.

Every remote operation is a fixed script body with ``{{ placeholder }}``
markers. Templates are compiled once, when the module that declares them is
imported, so a malformed template fails at startup rather than in the middle
of a reconciliation. Each emitted value is converted to a PowerShell literal,
which means template bodies never quote placeholders themselves::

    GET_THING = ScriptTemplate("GetThing", "$path = {{ path | winpath }}", _PathArgs)
"""
from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from enum import Enum
from pathlib import PurePath, PureWindowsPath
from typing import Any, Dict, FrozenSet, Optional

from jinja2 import (
    Environment,
    StrictUndefined,
    TemplateSyntaxError,
    UndefinedError,
    meta,
)
from pydantic import BaseModel

from .errors import TemplateRenderError

# PowerShell treats all of these as single-quote delimiters.
_SINGLE_QUOTES = ("'", "‘", "’", "‚", "‛")


def ps_quote(value: str) -> str:
    """Return a single-quoted PowerShell literal for ``value``."""

    escaped = value
    for quote in _SINGLE_QUOTES:
        escaped = escaped.replace(quote, quote * 2)
    return f"'{escaped}'"


def ps_literal(value: Any) -> str:
    """Render a Python value as PowerShell source text."""

    if value is None:
        return "$null"
    if isinstance(value, Enum):
        return ps_literal(value.value)
    if isinstance(value, bool):
        return "$true" if value else "$false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TemplateRenderError(f"Cannot render non-finite number {value!r}")
        return repr(value)
    if isinstance(value, str):
        return ps_quote(value)
    if isinstance(value, PurePath):
        return ps_quote(str(value))
    if isinstance(value, Mapping):
        entries = "; ".join(
            f"{ps_quote(str(key))} = {ps_literal(item)}" for key, item in value.items()
        )
        return "@{" + entries + "}"
    if isinstance(value, (list, tuple)):
        return "@(" + ", ".join(ps_literal(item) for item in value) + ")"

    raise TemplateRenderError(
        f"Cannot render value of type {type(value).__name__} as a PowerShell literal"
    )


def winpath(value: Any) -> Any:
    """Normalise a path to Windows separators, leaving empty values untouched."""

    if value is None or value == "":
        return value
    return str(PureWindowsPath(str(value)))


_environment = Environment(
    undefined=StrictUndefined,
    finalize=ps_literal,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)
_environment.filters["winpath"] = winpath


def _declared_fields(args_type: type) -> FrozenSet[str]:
    if isinstance(args_type, type) and issubclass(args_type, BaseModel):
        return frozenset(args_type.model_fields)
    if dataclasses.is_dataclass(args_type):
        return frozenset(field.name for field in dataclasses.fields(args_type))
    raise TemplateRenderError(
        f"Template arguments must be a pydantic model or dataclass, got {args_type!r}"
    )


def _argument_values(args: Any) -> Dict[str, Any]:
    if args is None:
        return {}
    if isinstance(args, BaseModel):
        return {name: getattr(args, name) for name in type(args).model_fields}
    if dataclasses.is_dataclass(args) and not isinstance(args, type):
        return {field.name: getattr(args, field.name) for field in dataclasses.fields(args)}
    if isinstance(args, Mapping):
        return dict(args)
    raise TemplateRenderError(
        f"Unsupported template argument container {type(args).__name__}"
    )


class ScriptTemplate:
    """A named, pre-compiled PowerShell script body."""

    def __init__(self, name: str, source: str, args_type: Optional[type] = None):
        self.name = name
        self.args_type = args_type

        try:
            parsed = _environment.parse(source, name=name)
            self._template = _environment.from_string(source)
        except TemplateSyntaxError as exc:
            raise TemplateRenderError(f"Template {name} is malformed: {exc}") from exc

        self.parameters: FrozenSet[str] = frozenset(meta.find_undeclared_variables(parsed))

        if args_type is not None:
            unknown = self.parameters - _declared_fields(args_type)
            if unknown:
                raise TemplateRenderError(
                    f"Template {name} references {', '.join(sorted(unknown))} "
                    f"which {args_type.__name__} does not declare"
                )

    def render(self, args: Any = None, **extra: Any) -> str:
        """Return the script text with every placeholder substituted."""

        if (
            self.args_type is not None
            and args is not None
            and not isinstance(args, (self.args_type, Mapping))
        ):
            raise TemplateRenderError(
                f"Template {self.name} expects {self.args_type.__name__} arguments, "
                f"got {type(args).__name__}"
            )

        values = _argument_values(args)
        values.update(extra)

        missing = self.parameters - values.keys()
        if missing:
            raise TemplateRenderError(
                f"Template {self.name} is missing arguments: {', '.join(sorted(missing))}"
            )

        try:
            return self._template.render(**values)
        except UndefinedError as exc:
            raise TemplateRenderError(f"Template {self.name} failed to render: {exc}") from exc

    def __repr__(self) -> str:
        return f"ScriptTemplate({self.name!r})"


__all__ = ["ScriptTemplate", "ps_literal", "ps_quote", "winpath"]
