"""Conversational assistant with persisted, windowed history.

One writer per conversation: a Redis ``SET NX EX`` lock guards the
read-append-write cycle, and a second concurrent message to the same
conversation is rejected with ConversationBusyError.
"""

import re
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from app.exceptions import ConversationBusyError
from cache.client import RedisClient
from cache.keys import CONVERSATION_LOCK_TTL, CacheKeys
from db.client import SupabaseClient
from db.models import Ad, ConversationCreate, ConversationUpdate
from db.repositories.ads import AdsRepository
from db.repositories.conversations import ConversationsRepository
from services.ai.orchestrator import AIOrchestrator
from services.ai.outcome import persist_best_effort
from services.ai.prompt_engine import PromptEngine, window_history
from services.ai.providers.base import ChatTurn

log = structlog.get_logger()

FEATURE = "chat_assistant"
SEARCH_RESULTS_LIMIT = 6

SEARCH_KEYWORDS: tuple[str, ...] = (
    "mám záujem",
    "zaujíma ma",
    "hľadám",
    "hladam",
    "nájdi",
    "najdi",
    "ukáž",
    "ukaz",
    "chcem",
    "potrebujem",
    "kúpiť",
    "kupit",
    "predať",
    "predat",
)
_KEYWORD_RE = re.compile("|".join(re.escape(k) for k in SEARCH_KEYWORDS), re.IGNORECASE)


def has_search_intent(message: str) -> bool:
    return _KEYWORD_RE.search(message) is not None


def search_terms(message: str) -> str:
    """Message with intent keywords and punctuation stripped, whitespace collapsed."""
    text = _KEYWORD_RE.sub(" ", message)
    text = re.sub(r"[?!.,;:]", " ", text)
    return " ".join(text.split())


def turns_from_stored(rows: list[dict[str, Any]]) -> list[ChatTurn]:
    """Stored conversation rows as turns.

    Accepts ``{role: user|model, text}`` as well as the older
    ``{role: assistant, content}`` shape; unusable rows are skipped.
    """
    turns: list[ChatTurn] = []
    for row in rows:
        role = row.get("role")
        text = row.get("text") or row.get("content") or ""
        if not isinstance(text, str) or not text:
            continue
        if role == "user":
            turns.append(ChatTurn("user", text))
        elif role in ("model", "assistant"):
            turns.append(ChatTurn("model", text))
    return turns


@dataclass
class ChatReply:
    response: str
    conversation_id: str
    timestamp: datetime
    generation_time_ms: int
    search_results: list[Ad] = field(default_factory=list)
    persisted: bool = True


class ChatService:
    def __init__(
        self,
        orchestrator: AIOrchestrator,
        prompts: PromptEngine,
        db: SupabaseClient,
        redis: RedisClient,
        *,
        history_window: int = 20,
        lock_ttl: int = CONVERSATION_LOCK_TTL,
    ) -> None:
        self._orchestrator = orchestrator
        self._prompts = prompts
        self._redis = redis
        self._history_window = history_window
        self._lock_ttl = lock_ttl
        self._conversations = ConversationsRepository(db)
        self._ads = AdsRepository(db)

    async def reply(
        self,
        message: str,
        user_id: str,
        *,
        conversation_id: str | None = None,
        context_type: str = "general",
    ) -> ChatReply:
        if conversation_id is None:
            return await self._reply(message, user_id, None, context_type)
        async with self._conversation_lock(conversation_id):
            return await self._reply(message, user_id, conversation_id, context_type)

    async def _reply(
        self,
        message: str,
        user_id: str,
        conversation_id: str | None,
        context_type: str,
    ) -> ChatReply:
        stored: list[dict[str, Any]] = []
        existing = None
        if conversation_id:
            existing = await self._conversations.get_for_user(conversation_id, user_id)
            if existing is None:
                log.info("chat_conversation_not_found", conversation_id=conversation_id, user_id=user_id)
            else:
                stored = list(existing.conversation_data)

        search_results = await self._search_ads(message) if has_search_intent(message) else []

        rendered = self._prompts.render(
            "chat",
            {"message": message, "context_type": context_type, "search_count": len(search_results)},
        )
        history = window_history(turns_from_stored(stored), self._history_window)
        result = await self._orchestrator.chat(
            FEATURE,
            rendered,
            history,
            user_id=user_id,
            metadata={"context_type": context_type, "history_turns": len(history)},
        )

        now = datetime.now(UTC)
        stored.extend(
            [
                {"role": "user", "text": message, "timestamp": now.isoformat()},
                {"role": "model", "text": result.content, "timestamp": now.isoformat()},
            ]
        )

        if existing is not None:
            conv_id = existing.id
            write = self._conversations.update(conv_id, ConversationUpdate(conversation_data=stored, last_message_at=now))
        else:
            # Unknown or foreign ids are never adopted; a new conversation gets its own id
            conv_id = str(uuid.uuid4())
            write = self._conversations.create(
                ConversationCreate(
                    id=conv_id,
                    user_id=user_id,
                    context_type=context_type,
                    conversation_data=stored,
                    last_message_at=now,
                )
            )
        persisted = await persist_best_effort(FEATURE, write)

        return ChatReply(
            response=result.content,
            conversation_id=conv_id,
            timestamp=now,
            generation_time_ms=result.generation_time_ms,
            search_results=search_results,
            persisted=persisted,
        )

    async def _search_ads(self, message: str) -> list[Ad]:
        terms = search_terms(message)
        if not terms:
            return []
        try:
            return await self._ads.search_active(terms, limit=SEARCH_RESULTS_LIMIT)
        except Exception:
            log.warning("chat_ad_search_failed", terms=terms, exc_info=True)
            return []

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str) -> AsyncIterator[None]:
        key = CacheKeys.conversation_lock(conversation_id)
        owner = uuid.uuid4().hex
        if not await self._redis.try_lock(key, owner, self._lock_ttl):
            raise ConversationBusyError(f"Conversation {conversation_id} is locked by another request")
        try:
            yield
        finally:
            try:
                await self._redis.unlock(key, owner)
            except Exception:
                log.warning("chat_lock_release_failed", conversation_id=conversation_id, exc_info=True)
