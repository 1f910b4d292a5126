"""Read-only search over active listings."""

import re
from decimal import Decimal

from db.models import Ad
from db.repositories.base import BaseRepository

_TABLE = "ads"

# Characters with meaning inside a PostgREST or=(...) filter or an ILIKE pattern
_FILTER_UNSAFE_RE = re.compile(r"[,()%*\\\"'.:]")


def _clean_term(text: str) -> str:
    return " ".join(_FILTER_UNSAFE_RE.sub(" ", text).split())


class AdsRepository(BaseRepository):
    async def search_active(
        self,
        text: str | None = None,
        *,
        price_min: Decimal | float | None = None,
        price_max: Decimal | float | None = None,
        location: str | None = None,
        limit: int = 50,
    ) -> list[Ad]:
        """Active ads whose title or description contains ``text``, with optional filters."""
        query = self._table(_TABLE).select("*").eq("status", "active")

        term = _clean_term(text or "")
        if term:
            query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")
        if price_min is not None:
            query = query.gte("price", float(price_min))
        if price_max is not None:
            query = query.lte("price", float(price_max))
        place = _clean_term(location or "")
        if place:
            query = query.ilike("location", f"%{place}%")

        resp = await query.order("created_at", desc=True).limit(limit).execute()
        return [Ad(**row) for row in self._rows(resp)]
