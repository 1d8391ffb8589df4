"""Tests for PowerShell template rendering."""

from dataclasses import dataclass
from enum import Enum
from pathlib import PureWindowsPath
from typing import Optional

import pytest
from pydantic import BaseModel

from hyperv_provider.core.errors import TemplateRenderError
from hyperv_provider.core.models import VhdType
from hyperv_provider.core.templates import ScriptTemplate, ps_literal, ps_quote, winpath

_QUOTES = "'‘’‚‛"


def _unquote(literal: str) -> str:
    """Decode a single-quoted PowerShell literal the way the parser does."""

    assert literal[0] in _QUOTES and literal[-1] in _QUOTES
    body = literal[1:-1]
    decoded = []
    index = 0
    while index < len(body):
        char = body[index]
        if char in _QUOTES:
            assert index + 1 < len(body) and body[index + 1] in _QUOTES, "unescaped quote"
            index += 2
        else:
            index += 1
        decoded.append(char)
    return "".join(decoded)


@dataclass
class _PathArgs:
    path: str
    size: int = 0


class _ModelArgs(BaseModel):
    name: str
    enabled: bool = True
    notes: Optional[str] = None


@pytest.mark.parametrize(
    "value",
    [
        "plain",
        "O'Reilly",
        "''already doubled''",
        "C:\\Program Files\\Hyper-V\\disk.vhdx",
        "trailing backslash\\",
        "smart ‘quotes’ and ‚low‛ ones",
        "$(Remove-Item C:\\ -Recurse)",
        "",
    ],
)
def test_ps_quote_round_trips(value):
    assert _unquote(ps_quote(value)) == value


def test_ps_literal_scalars():
    assert ps_literal(None) == "$null"
    assert ps_literal(True) == "$true"
    assert ps_literal(False) == "$false"
    assert ps_literal(4096) == "4096"
    assert ps_literal(1.5) == "1.5"
    assert ps_literal(VhdType.DIFFERENCING) == "'Differencing'"
    assert ps_literal(PureWindowsPath("C:/a/b")) == "'C:\\a\\b'"


def test_ps_literal_collections():
    assert ps_literal(["a", 1, True]) == "@('a', 1, $true)"
    assert ps_literal({"Name": "vm", "Count": 2}) == "@{'Name' = 'vm'; 'Count' = 2}"
    assert ps_literal([]) == "@()"


def test_ps_literal_rejects_unsupported_values():
    with pytest.raises(TemplateRenderError):
        ps_literal(object())
    with pytest.raises(TemplateRenderError):
        ps_literal(float("nan"))


def test_ps_literal_renders_plain_enum_by_value():
    class Color(Enum):
        RED = "Red"

    assert ps_literal(Color.RED) == "'Red'"


def test_winpath_normalises_separators():
    assert winpath("C:/Temp/disks/a.vhdx") == "C:\\Temp\\disks\\a.vhdx"
    assert winpath("") == ""
    assert winpath(None) is None


def test_render_substitutes_and_quotes_every_value():
    template = ScriptTemplate("Test", "$path = {{ path | winpath }}\n$size = {{ size }}\n", _PathArgs)

    rendered = template.render(_PathArgs(path="C:/Temp/it's.vhdx", size=8192))

    assert rendered == "$path = 'C:\\Temp\\it''s.vhdx'\n$size = 8192\n"
    assert "{{" not in rendered


def test_render_is_pure():
    template = ScriptTemplate("Pure", "{{ name }} {{ enabled }} {{ notes }}", _ModelArgs)
    args = _ModelArgs(name="vm'01")

    first = template.render(args)
    second = template.render(_ModelArgs(name="vm'01"))

    assert first == second == "'vm''01' $true $null"


def test_render_accepts_mapping_and_extra_values():
    template = ScriptTemplate("Mapping", "{{ name }}/{{ token }}")

    assert template.render({"name": "a"}, token="b") == "'a'/'b'"


def test_template_reports_parameters():
    template = ScriptTemplate("Params", "{{ path }} {% if size %}{{ size }}{% endif %}", _PathArgs)

    assert template.parameters == frozenset({"path", "size"})


def test_malformed_template_fails_at_construction():
    with pytest.raises(TemplateRenderError, match="Broken"):
        ScriptTemplate("Broken", "{% if path %}unterminated")


def test_undeclared_placeholder_fails_at_construction():
    with pytest.raises(TemplateRenderError, match="missing_field"):
        ScriptTemplate("Undeclared", "{{ path }} {{ missing_field }}", _PathArgs)


def test_missing_argument_fails_at_render():
    template = ScriptTemplate("Missing", "{{ path }} {{ token }}")

    with pytest.raises(TemplateRenderError, match="token"):
        template.render({"path": "x"})


def test_wrong_argument_type_fails_at_render():
    template = ScriptTemplate("Typed", "{{ path }}", _PathArgs)

    with pytest.raises(TemplateRenderError, match="_PathArgs"):
        template.render(_ModelArgs(name="x"))


def test_args_type_must_be_model_or_dataclass():
    with pytest.raises(TemplateRenderError):
        ScriptTemplate("BadArgs", "{{ path }}", dict)
