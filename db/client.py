"""Async Supabase PostgREST client wrapper."""

from typing import Any

from postgrest import AsyncPostgrestClient, AsyncRequestBuilder

# Small append-only table every deployment has; used by the health check.
_PING_TABLE = "ai_usage_logs"


class SupabaseClient:
    """AsyncPostgrestClient with service-role auth headers and a request timeout."""

    def __init__(self, url: str, key: str, *, timeout: float = 10.0) -> None:
        headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        self._client = AsyncPostgrestClient(f"{url}/rest/v1", headers=headers, timeout=timeout)

    def table(self, name: str) -> AsyncRequestBuilder:
        return self._client.table(name)

    async def rpc(self, fn_name: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Call a PostgreSQL function exposed by PostgREST; rows of its result.

        Raises if the function does not exist.
        """
        resp = await self._client.rpc(fn_name, params or {}).execute()
        return resp.data or []  # type: ignore[return-value]

    async def ping(self) -> None:
        """Cheapest possible round trip. Raises on any store failure."""
        await self.table(_PING_TABLE).select("id").limit(1).execute()

    async def close(self) -> None:
        await self._client.aclose()
