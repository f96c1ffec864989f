"""JSON file leaderboard store used when the hosted table is unavailable."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from dominion.errors import LedgerWriteError
from dominion.models import LeaderboardEntry
from dominion.models.leaderboard import utc_now_iso
from .base import LedgerStore

logger = logging.getLogger(__name__)

LEADERBOARD_KEY = "rugal-leaderboard"


class LocalLedgerStore(LedgerStore):
    """
    Leaderboard rows kept in a single JSON document on local disk.

    Every operation re-reads the file and merges into it, so several
    processes pointed at the same path see each other's writes.
    """

    name = "local"

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise LedgerWriteError(f"Cannot read {self.path}: {e}") from e

    def _save(self, document: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise LedgerWriteError(f"Cannot write {self.path}: {e}") from e

    def _entries(self, document: dict[str, Any]) -> list[LeaderboardEntry]:
        try:
            return [LeaderboardEntry.model_validate(row) for row in document.get(LEADERBOARD_KEY, [])]
        except ValidationError as e:
            raise LedgerWriteError(f"Malformed leaderboard row in {self.path}: {e}") from e

    def _store_entries(self, document: dict[str, Any], entries: list[LeaderboardEntry]) -> None:
        document[LEADERBOARD_KEY] = [entry.model_dump() for entry in entries]
        self._save(document)

    async def get_top(self, limit: int) -> list[LeaderboardEntry]:
        async with self._lock:
            entries = self._entries(self._load())
        entries.sort(key=lambda e: e.points, reverse=True)
        return entries[:limit]

    async def get_entry(self, wallet: str) -> Optional[LeaderboardEntry]:
        return await self.find_by("wallet", wallet)

    async def find_by(self, column: str, value: str) -> Optional[LeaderboardEntry]:
        async with self._lock:
            entries = self._entries(self._load())
        for entry in entries:
            if getattr(entry, column, None) == value:
                return entry
        return None

    async def insert(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        async with self._lock:
            document = self._load()
            entries = self._entries(document)
            if any(e.wallet == entry.wallet for e in entries):
                raise LedgerWriteError(f"Duplicate leaderboard row for {entry.wallet}")
            entries.append(entry)
            self._store_entries(document, entries)
        logger.debug(f"Inserted local leaderboard row for {entry.wallet}")
        return entry

    async def update(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        async with self._lock:
            document = self._load()
            entries = self._entries(document)
            for i, entry in enumerate(entries):
                if entry.wallet == wallet:
                    entries[i] = entry.model_copy(update={**fields, "updated_at": utc_now_iso()})
                    self._store_entries(document, entries)
                    return entries[i]
        raise LedgerWriteError(f"No leaderboard row for {wallet}")

    async def upsert(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        async with self._lock:
            document = self._load()
            entries = self._entries(document)
            for i, entry in enumerate(entries):
                if entry.wallet == wallet:
                    entries[i] = entry.model_copy(update={**fields, "updated_at": utc_now_iso()})
                    self._store_entries(document, entries)
                    return entries[i]
            created = LeaderboardEntry.new(wallet).model_copy(update=fields)
            entries.append(created)
            self._store_entries(document, entries)
            return created
