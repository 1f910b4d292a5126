"""Coercion of free-text model output into validated JSON objects.

Models wrap JSON in prose or markdown fences. ``extract_json`` takes the
first top-level object (string- and escape-aware brace matching), and
``decode_structured`` validates it against a pydantic model.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from app.exceptions import DecodeError, DecodeErrorKind

SCHEMA_INSTRUCTION = "\n\nPlease respond with valid JSON that matches this schema:\n"


def append_schema(prompt: str, schema_hint: str) -> str:
    """Append the JSON-shape instruction to a rendered prompt."""
    if not schema_hint:
        return prompt
    return f"{prompt}{SCHEMA_INSTRUCTION}{schema_hint.strip()}"


def _find_object_end(text: str, start: int) -> int | None:
    """Index of the brace closing the object opened at ``start``, or None."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json(text: str) -> dict[str, Any]:
    """Return the first balanced JSON object embedded in ``text``."""
    start = text.find("{")
    if start == -1:
        raise DecodeError(DecodeErrorKind.NO_JSON_FOUND, "no '{' in model output")

    end = _find_object_end(text, start)
    if end is None:
        raise DecodeError(DecodeErrorKind.INVALID_JSON, "unbalanced braces in model output")

    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise DecodeError(DecodeErrorKind.INVALID_JSON, str(exc)) from exc
    if not isinstance(value, dict):  # pragma: no cover - a {...} span always parses to a dict
        raise DecodeError(DecodeErrorKind.INVALID_JSON, "top-level value is not an object")
    return value


def decode_structured[M: BaseModel](text: str, model: type[M]) -> M:
    """Extract the JSON object from ``text`` and validate it as ``model``."""
    payload = extract_json(text)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(
            DecodeErrorKind.SCHEMA_MISMATCH,
            f"{model.__name__}: {exc.error_count()} validation error(s)",
        ) from exc
