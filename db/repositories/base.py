"""Shared plumbing for the PostgREST repositories."""

from typing import Any

from postgrest import AsyncRequestBuilder
from pydantic import BaseModel

from app.exceptions import StoreError
from db.client import SupabaseClient

Row = dict[str, Any]


class BaseRepository:
    """Table access plus helpers that unwrap postgrest's loosely typed responses."""

    def __init__(self, db: SupabaseClient) -> None:
        self._db = db

    def _table(self, name: str) -> AsyncRequestBuilder:
        return self._db.table(name)

    @staticmethod
    def _payload(data: BaseModel) -> Row:
        """Row body for insert/upsert/update; datetimes and decimals as strings."""
        return data.model_dump(mode="json")

    @staticmethod
    def _single(resp: Any) -> Row | None:
        """Row from a maybe_single() query; postgrest returns None for no match."""
        return (resp.data or None) if resp is not None else None

    @staticmethod
    def _rows(resp: Any) -> list[Row]:
        return list(resp.data or [])

    @staticmethod
    def _first(resp: Any) -> Row | None:
        """First returned row of a write, if the store echoed any."""
        return resp.data[0] if resp.data else None

    @classmethod
    def _require_first(cls, resp: Any) -> Row:
        row = cls._first(resp)
        if row is None:
            raise StoreError("Database write returned no data")
        return row
