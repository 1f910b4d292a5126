"""Tests for services/ai/prompt_engine.py — YAML templates rendered with Jinja2.

Covers: every shipped template renders, determinism, None handling,
required variables, injection stripping, chat context branches, history window.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from app.exceptions import PromptError
from services.ai.prompt_engine import PromptEngine, to_pretty_json, window_history
from services.ai.providers.base import ChatTurn

EXPECTED_TASKS = {
    "ad_description",
    "ad_quality",
    "ad_tags",
    "ad_title",
    "chat",
    "compare_products",
    "fraud_detection",
    "image_analysis",
    "recommend_price",
    "semantic_search",
    "suggest_alternatives",
}

STRUCTURED_TASKS = EXPECTED_TASKS - {"ad_description", "chat", "image_analysis"}


# ---------------------------------------------------------------------------
# Template inventory
# ---------------------------------------------------------------------------


class TestTemplates:
    def test_all_tasks_shipped(self, prompts: PromptEngine) -> None:
        assert set(prompts.tasks) == EXPECTED_TASKS

    @pytest.mark.parametrize("task", sorted(STRUCTURED_TASKS))
    def test_structured_tasks_have_schema(self, prompts: PromptEngine, task: str) -> None:
        context = {
            "product": {"name": "Bicykel"},
            "products": [{"name": "A"}, {"name": "B"}],
            "ad": {"title": "Bicykel"},
            "query": "bicykel",
            "category": "sport",
        }
        rendered = prompts.render(task, context)
        assert rendered.schema_hint.startswith("{")
        assert rendered.version == "v2"

    def test_meta_exposed(self, prompts: PromptEngine) -> None:
        rendered = prompts.render("ad_quality", {"ad": {"title": "x"}})
        assert rendered.meta["temperature"] == 0.3


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


SAMPLE_OBJECTS = {
    "nested": {
        "name": "Horský bicykel Trek Marlin 7",
        "specs": {"frame": {"material": "hliník", "size": "L"}, "gears": [3, 10], "weight_kg": 13.2},
        "photos": [{"url": "https://cdn.kupado.sk/ads/1.jpg", "order": 1}, {"url": "https://cdn.kupado.sk/ads/2.jpg"}],
        "negotiable": True,
    },
    "with_none": {
        "name": "Stolička",
        "brand": None,
        "specs": {"color": None, "legs": 4, "extras": [None, "podsedák"]},
        "price": None,
        "features": [None],
    },
    "non_ascii": {
        "name": "Žltá pletená čiapka",
        "description": "Ručne pletená, 100 % vlna – ľahká a teplá",
        "price": "12,50 €",
        "location": "Nové Zámky",
        "tags": ["zima", "ďalšie", "🧶"],
    },
}


def _context_for(obj: dict) -> dict:
    """Values for every variable any template declares, built around ``obj``."""
    return {
        "product": obj,
        "ad": obj,
        "products": [obj, {**obj, "name": f"{obj['name']} (2)"}],
        "similar_products": [obj],
        "message": f"Mám záujem o {obj['name']}",
        "query": obj["name"],
        "category": "Šport a voľný čas",
        "context_type": "buying_guide",
        "search_count": 2,
    }


class TestRender:
    @pytest.mark.parametrize("sample", sorted(SAMPLE_OBJECTS))
    @pytest.mark.parametrize("task", sorted(EXPECTED_TASKS))
    def test_deterministic(self, prompts: PromptEngine, task: str, sample: str) -> None:
        context = _context_for(SAMPLE_OBJECTS[sample])
        first = prompts.render(task, context)
        again = prompts.render(task, _context_for(SAMPLE_OBJECTS[sample]))
        fresh_engine = PromptEngine().render(task, context)
        assert first == again == fresh_engine
        assert context == _context_for(SAMPLE_OBJECTS[sample])

    @pytest.mark.parametrize("task", sorted(EXPECTED_TASKS))
    def test_none_never_rendered(self, prompts: PromptEngine, task: str) -> None:
        rendered = prompts.render(task, _context_for(SAMPLE_OBJECTS["with_none"]))
        for text in (rendered.system, rendered.user):
            assert "None" not in text
            assert "null" not in text

    @pytest.mark.parametrize("task", ["ad_description", "ad_quality", "compare_products", "recommend_price"])
    def test_non_ascii_kept_verbatim(self, prompts: PromptEngine, task: str) -> None:
        rendered = prompts.render(task, _context_for(SAMPLE_OBJECTS["non_ascii"]))
        assert "Ručne pletená, 100 % vlna – ľahká a teplá" in rendered.user
        assert "🧶" in rendered.user
        assert "\\u" not in rendered.user

    def test_product_embedded_as_utf8_json(self, prompts: PromptEngine, product_info: dict) -> None:
        rendered = prompts.render("ad_description", {"product": product_info})
        assert '"name": "iPhone 13 Pro"' in rendered.user
        assert "batéria 89 %" in rendered.user

    def test_none_fields_omitted(self, prompts: PromptEngine) -> None:
        rendered = prompts.render("ad_description", {"product": {"name": "Stolička", "brand": None}})
        assert "brand" not in rendered.user
        assert "None" not in rendered.user
        assert "null" not in rendered.user

    def test_missing_required_variable(self, prompts: PromptEngine) -> None:
        with pytest.raises(PromptError, match="product"):
            prompts.render("ad_description", {})

    def test_none_required_variable_counts_as_missing(self, prompts: PromptEngine) -> None:
        with pytest.raises(PromptError):
            prompts.render("semantic_search", {"query": None})

    def test_unknown_task(self, prompts: PromptEngine) -> None:
        with pytest.raises(PromptError, match="No prompt template"):
            prompts.render("horoscope", {})

    def test_defaults_applied(self, prompts: PromptEngine) -> None:
        rendered = prompts.render("compare_products", {"products": [{"name": "A"}, {"name": "B"}]})
        assert "Kategória: general" in rendered.user

    def test_template_delimiters_stripped_from_input(self, prompts: PromptEngine) -> None:
        rendered = prompts.render("semantic_search", {"query": "<< 7*7 >> <% if true %>x<% endif %>"})
        assert "<<" not in rendered.user
        assert "49" not in rendered.user

    def test_undefined_name_in_template(self, tmp_path: Path) -> None:
        (tmp_path / "broken.yaml").write_text("meta:\n  version: v1\nuser: 'Hi << nobody >>'\n", encoding="utf-8")
        engine = PromptEngine(tmp_path)
        with pytest.raises(PromptError, match="broken"):
            engine.render("broken", {})


class TestChatTemplate:
    @pytest.mark.parametrize(
        ("context_type", "marker"),
        [
            ("general", "užitočný AI asistent"),
            ("ad_help", "AI expert na vytváranie inzerátov"),
            ("buying_guide", "AI nákupný poradca"),
            ("support", "AI support agent"),
        ],
    )
    def test_system_prompt_per_context(self, prompts: PromptEngine, context_type: str, marker: str) -> None:
        rendered = prompts.render("chat", {"message": "Ahoj", "context_type": context_type})
        assert marker in rendered.system
        assert rendered.user == "Ahoj"

    def test_search_results_announced(self, prompts: PromptEngine) -> None:
        rendered = prompts.render("chat", {"message": "hľadám bicykel", "search_count": 3})
        assert "Našiel som 3 inzerátov" in rendered.user
        assert "zobrazia sa pod tvojou odpoveďou" in rendered.system


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_to_pretty_json_drops_nested_none() -> None:
    assert to_pretty_json({"a": 1, "b": None, "c": [None, {"d": None}]}) == '{\n  "a": 1,\n  "c": [\n    {}\n  ]\n}'


class TestWindowHistory:
    def _turns(self, n: int) -> list[ChatTurn]:
        return [ChatTurn("user" if i % 2 == 0 else "model", f"t{i}") for i in range(n)]

    def test_short_history_unchanged(self) -> None:
        turns = self._turns(4)
        assert window_history(turns, 20) == turns

    def test_keeps_last_turns(self) -> None:
        windowed = window_history(self._turns(30), 20)
        assert len(windowed) == 20
        assert windowed[-1].text == "t29"

    def test_never_starts_with_model_turn(self) -> None:
        windowed = window_history(self._turns(30), 5)
        assert windowed[0].role == "user"
        assert [t.text for t in windowed] == ["t26", "t27", "t28", "t29"]

    def test_zero_limit(self) -> None:
        assert window_history(self._turns(6), 0) == []
