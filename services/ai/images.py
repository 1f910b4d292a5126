"""Product photo analysis.

The model answers in four labelled lines (Popis / Kategória /
Charakteristiky / Kľúčové slová); this module parses them. No numeric
quality scores are produced: the model is not asked for any.
"""

import re
from dataclasses import dataclass

import structlog

from app.exceptions import InputValidationError
from db.client import SupabaseClient
from db.models import ImageAnalysisCreate
from db.repositories.results import AnalysesRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import FeatureOutcome, persist_best_effort
from services.ai.prompt_engine import PromptEngine
from services.ai.providers.base import parse_image_data
from services.ai.schemas import ImageAnalysis

log = structlog.get_logger()

FEATURE = "image_analysis"

_LABELS: dict[str, str] = {
    "popis": "description",
    "kategória": "category",
    "kategoria": "category",
    "charakteristiky": "characteristics",
    "kľúčové slová": "keywords",
    "klucove slova": "keywords",
}
_LINE_RE = re.compile(r"^\s*[*#\-\d.\s]*([^:]{3,20}?)\**\s*:\**\s*(.+)$")


def _split_list(value: str) -> list[str]:
    return [part.strip(" .") for part in re.split(r"[,;]", value) if part.strip(" .")]


def parse_image_analysis(text: str) -> ImageAnalysis:
    """Read labelled lines; without a ``Popis:`` line the first line is the description."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        match = _LINE_RE.match(line)
        if not match:
            continue
        label = _LABELS.get(match.group(1).strip().lower())
        if label and label not in fields:
            fields[label] = match.group(2).strip()

    description = fields.get("description")
    if not description:
        description = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    return ImageAnalysis(
        description=description,
        category=fields.get("category") or None,
        characteristics=_split_list(fields.get("characteristics", "")),
        keywords=_split_list(fields.get("keywords", "")),
    )


@dataclass
class ImageReport:
    text: str
    analysis: ImageAnalysis


class ImageAnalysisService:
    def __init__(
        self,
        orchestrator: AIOrchestrator,
        prompts: PromptEngine,
        db: SupabaseClient,
        *,
        allowed_hosts: frozenset[str] = frozenset(),
    ) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._analyses = AnalysesRepository(db)
        self._allowed_hosts = allowed_hosts

    async def analyze(
        self,
        image: str,
        *,
        image_url: str | None = None,
        ad_id: str | None = None,
        user_id: str | None = None,
    ) -> FeatureOutcome[ImageReport]:
        try:
            source = parse_image_data(image, self._allowed_hosts)
        except ValueError as exc:
            raise InputValidationError(
                message=f"Rejected image input: {exc}",
                user_message="Obrázok musí byť https URL adresa verejného servera alebo base64 dáta",
            ) from exc

        rendered = self._prompts.render("image_analysis", {})
        result = await self._orchestrator.analyze_image(
            FEATURE,
            rendered,
            source,
            user_id=user_id,
            metadata={"source": "url" if source.url else "inline"},
        )
        analysis = parse_image_analysis(result.content)

        persisted: bool | None = None
        if ad_id:
            persisted = await persist_best_effort(
                FEATURE,
                self._analyses.create_image_analysis(
                    ImageAnalysisCreate(
                        ad_id=ad_id,
                        image_url=image_url or source.url,
                        description=analysis.description,
                        category=analysis.category,
                        characteristics=analysis.characteristics,
                        keywords=analysis.keywords,
                    )
                ),
            )
        return FeatureOutcome(ImageReport(result.content, analysis), result.generation_time_ms, persisted)
