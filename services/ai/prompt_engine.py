"""Jinja2 prompt renderer over the YAML templates shipped in ``prompts/``.

Templates are read once at construction; ``render`` is pure: the same
context always yields byte-identical text.

Template layout::

    meta:       {task, version, temperature?, max_tokens?}
    system:     optional system instruction
    user:       main prompt
    schema:     optional JSON shape appended by the structured decoder
    variables:  [{name, required?, default?}]
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from app.exceptions import PromptError
from services.ai.providers.base import ChatTurn

log = structlog.get_logger()

PROMPTS_DIR = Path(__file__).parent / "prompts"


@dataclass
class RenderedPrompt:
    """Result of prompt rendering."""

    system: str
    user: str
    schema_hint: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    version: str = ""


def _strip_delimiters(value: str) -> str:
    value = value.replace("<<", "").replace(">>", "")
    value = value.replace("<%", "").replace("%>", "")
    return value.replace("<#", "").replace("#>", "")


def _sanitize_variables(value: Any) -> Any:
    """Strip Jinja2 delimiters from user input (recursively) to prevent prompt injection."""
    if isinstance(value, str):
        return _strip_delimiters(value)
    if isinstance(value, dict):
        return {k: _sanitize_variables(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_variables(v) for v in value]
    return value


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value if v is not None]
    return value


def to_pretty_json(value: Any) -> str:
    """Embed a domain object in a prompt: 2-space JSON, None fields dropped, UTF-8 kept."""
    return json.dumps(_drop_none(value), ensure_ascii=False, indent=2, default=str)


def window_history(turns: Sequence[ChatTurn], limit: int) -> list[ChatTurn]:
    """Last ``limit`` turns of a conversation, never starting with a model turn."""
    if limit <= 0:
        return []
    windowed = list(turns[-limit:])
    while windowed and windowed[0].role != "user":
        windowed.pop(0)
    return windowed


class PromptEngine:
    """Renders named prompt templates with Jinja2 <<>> delimiters."""

    def __init__(self, prompts_dir: str | Path = PROMPTS_DIR) -> None:
        self._env = Environment(
            variable_start_string="<<",
            variable_end_string=">>",
            block_start_string="<%",
            block_end_string="%>",
            comment_start_string="<#",
            comment_end_string="#>",
            undefined=StrictUndefined,
            keep_trailing_newline=False,
            autoescape=False,  # noqa: S701  # nosec B701 prompts are plain text, sanitized via _sanitize_variables
        )
        self._env.filters["pretty"] = to_pretty_json
        self._templates: dict[str, dict[str, Any]] = {}
        for path in sorted(Path(prompts_dir).glob("*.yaml")):
            self._templates[path.stem] = self.load_yaml_seed(path)
        log.info("prompts_loaded", count=len(self._templates))

    @property
    def tasks(self) -> list[str]:
        return sorted(self._templates)

    def render(self, task: str, context: dict[str, Any]) -> RenderedPrompt:
        """Render template ``task`` with ``context``.

        Raises PromptError if the template is unknown, a required variable
        is missing, or the template references an undefined name.
        """
        parsed = self._templates.get(task)
        if parsed is None:
            raise PromptError(message=f"No prompt template for task={task}")

        safe_context = _sanitize_variables(_drop_none(context))

        # Apply defaults from variables spec
        for var in parsed.get("variables", []):
            name = var.get("name", "")
            if name and name not in safe_context:
                if "default" in var:
                    safe_context[name] = var["default"]
                elif var.get("required", False):
                    raise PromptError(message=f"Missing required variable: {name} (task={task})")

        try:
            system = self._env.from_string(parsed.get("system", "")).render(**safe_context)
            user = self._env.from_string(parsed.get("user", "")).render(**safe_context)
        except TemplateError as exc:
            raise PromptError(message=f"Template {task} failed to render: {exc}") from exc

        meta = parsed.get("meta", {})
        return RenderedPrompt(
            system=system.strip(),
            user=user.strip(),
            schema_hint=(parsed.get("schema") or "").strip(),
            meta=meta,
            version=str(meta.get("version", "")),
        )

    @staticmethod
    def load_yaml_seed(path: str | Path) -> dict[str, Any]:
        """Load a YAML prompt file from disk."""
        with open(path, encoding="utf-8") as f:
            result: dict[str, Any] = yaml.safe_load(f)
            return result
