"""Repository layer: all database access goes through here."""

from db.repositories.ads import AdsRepository
from db.repositories.ai_cache import AICacheRepository
from db.repositories.conversations import ConversationsRepository
from db.repositories.results import (
    AnalysesRepository,
    GeneratedContentRepository,
    QualityScoresRepository,
)
from db.repositories.usage import UsageRepository

__all__ = [
    "AICacheRepository",
    "AdsRepository",
    "AnalysesRepository",
    "ConversationsRepository",
    "GeneratedContentRepository",
    "QualityScoresRepository",
    "UsageRepository",
]
