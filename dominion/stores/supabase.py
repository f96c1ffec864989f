"""Hosted leaderboard table reached through its PostgREST interface."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from dominion.errors import LedgerWriteError
from dominion.models import LeaderboardEntry
from .base import LedgerStore

logger = logging.getLogger(__name__)

TABLE = "leaderboard_entries"
REQUEST_TIMEOUT = 15.0


class SupabaseLedgerStore(LedgerStore):
    """
    ``leaderboard_entries`` in a hosted Postgres exposed over PostgREST.

    The table and its unique ``wallet`` constraint are managed outside this
    service.
    """

    name = "supabase"

    def __init__(
        self,
        url: str,
        anon_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self._anon_key = anon_key
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1/",
                headers={
                    "apikey": self._anon_key,
                    "Authorization": f"Bearer {self._anon_key}",
                    "Content-Type": "application/json",
                },
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        params: Optional[dict] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> list[dict]:
        client = await self._get_client()
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await client.request(
                method, TABLE, params=params, json=json, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"{method} {TABLE} returned {e.response.status_code}: {e.response.text}"
            )
            raise LedgerWriteError(f"{TABLE} {method} failed: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {TABLE} failed: {e}")
            raise LedgerWriteError(f"{TABLE} {method} failed: {e}") from e

        if not response.content:
            return []
        try:
            rows = response.json()
        except ValueError as e:
            logger.error(f"{method} {TABLE} returned a non-JSON body")
            raise LedgerWriteError(f"{TABLE} {method} returned invalid JSON") from e
        if not isinstance(rows, list):
            raise LedgerWriteError(f"{TABLE} {method} returned {type(rows).__name__}, expected rows")
        return rows

    @staticmethod
    def _entries(rows: list[dict]) -> list[LeaderboardEntry]:
        try:
            return [LeaderboardEntry.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Unexpected {TABLE} row: {e}")
            raise LedgerWriteError(f"Unexpected {TABLE} row") from e

    @classmethod
    def _first(cls, rows: list[dict]) -> Optional[LeaderboardEntry]:
        entries = cls._entries(rows[:1])
        return entries[0] if entries else None

    async def get_top(self, limit: int) -> list[LeaderboardEntry]:
        rows = await self._request(
            "GET",
            params={"select": "*", "order": "points.desc", "limit": str(limit)},
        )
        return self._entries(rows)

    async def get_entry(self, wallet: str) -> Optional[LeaderboardEntry]:
        return await self.find_by("wallet", wallet)

    async def find_by(self, column: str, value: str) -> Optional[LeaderboardEntry]:
        rows = await self._request(
            "GET",
            params={"select": "*", column: f"eq.{value}", "limit": "1"},
        )
        return self._first(rows)

    async def insert(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        # id, created_at and updated_at are assigned by the database
        payload = entry.model_dump(
            exclude_none=True, exclude={"id", "created_at", "updated_at"}
        )
        rows = await self._request("POST", json=payload, prefer="return=representation")
        created = self._first(rows)
        if created is None:
            raise LedgerWriteError(f"Insert for {entry.wallet} returned no row")
        return created

    async def update(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        rows = await self._request(
            "PATCH",
            params={"wallet": f"eq.{wallet}"},
            json=fields,
            prefer="return=representation",
        )
        updated = self._first(rows)
        if updated is None:
            raise LedgerWriteError(f"No leaderboard row for {wallet}")
        return updated

    async def upsert(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        rows = await self._request(
            "POST",
            params={"on_conflict": "wallet"},
            json={**fields, "wallet": wallet},
            prefer="resolution=merge-duplicates,return=representation",
        )
        row = self._first(rows)
        if row is None:
            raise LedgerWriteError(f"Upsert for {wallet} returned no row")
        return row

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
