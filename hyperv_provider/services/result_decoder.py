"""Decode structured script output into typed results."""
from __future__ import annotations

import json
import logging
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ResultDecodeError

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

_BOM = "\ufeff"
_EMPTY_MARKERS = ("", "{}", "null")


def _load(stdout: str) -> Any:
    text = (stdout or "").lstrip(_BOM).strip()
    if text in _EMPTY_MARKERS:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResultDecodeError(f"Script output is not valid JSON ({exc.msg})", stdout) from exc


def _build(payload: Any, result_type: Type[ResultT], stdout: str) -> ResultT:
    if not isinstance(payload, dict):
        raise ResultDecodeError(
            f"Expected a JSON object for {result_type.__name__}, got {type(payload).__name__}",
            stdout,
        )
    try:
        return result_type.model_validate(payload)
    except ValidationError as exc:
        raise ResultDecodeError(
            f"Script output does not match {result_type.__name__}: {exc.error_count()} error(s)",
            stdout,
        ) from exc


def decode_result(stdout: str, result_type: Type[ResultT]) -> ResultT:
    """Decode a single JSON object.

    Empty output, ``{}`` and ``null`` all decode to the zero value of
    ``result_type``; lookup scripts use them to say "not found".
    """

    payload = _load(stdout)
    if payload is None or payload == {}:
        logger.debug("Empty payload decoded to zero-value %s", result_type.__name__)
        return result_type()
    return _build(payload, result_type, stdout)


def decode_result_list(stdout: str, item_type: Type[ResultT]) -> List[ResultT]:
    """Decode a JSON array; ConvertTo-Json unwraps single-item arrays so a lone object is accepted."""

    payload = _load(stdout)
    if payload is None or payload == {}:
        return []
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise ResultDecodeError(
            f"Expected a JSON array of {item_type.__name__}, got {type(payload).__name__}",
            stdout,
        )
    return [_build(item, item_type, stdout) for item in payload]


__all__ = ["decode_result", "decode_result_list"]
