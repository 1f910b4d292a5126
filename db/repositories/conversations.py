"""Repository for ai_chat_conversations."""

from db.models import Conversation, ConversationCreate, ConversationUpdate
from db.repositories.base import BaseRepository

_TABLE = "ai_chat_conversations"


class ConversationsRepository(BaseRepository):
    async def get_for_user(self, conversation_id: str, user_id: str) -> Conversation | None:
        """Conversation owned by ``user_id``; None for unknown ids or other users' threads."""
        resp = (
            await self._table(_TABLE)
            .select("*")
            .eq("id", conversation_id)
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
        row = self._single(resp)
        return Conversation(**row) if row else None

    async def create(self, data: ConversationCreate) -> Conversation:
        resp = await self._table(_TABLE).insert(self._payload(data)).execute()
        return Conversation(**self._require_first(resp))

    async def update(self, conversation_id: str, data: ConversationUpdate) -> None:
        await self._table(_TABLE).update(self._payload(data)).eq("id", conversation_id).execute()
