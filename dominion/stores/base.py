"""Abstract base class for leaderboard stores."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from dominion.models import LeaderboardEntry


class LedgerStore(ABC):
    """
    Storage for ``leaderboard_entries`` rows, keyed by wallet.

    Implementations raise ``LedgerWriteError`` for any storage failure so
    callers can fall back without knowing the backend.
    """

    name: str = "store"

    @abstractmethod
    async def get_top(self, limit: int) -> list[LeaderboardEntry]:
        """Rows ordered by points descending, at most ``limit``."""
        pass

    @abstractmethod
    async def get_entry(self, wallet: str) -> Optional[LeaderboardEntry]:
        pass

    @abstractmethod
    async def find_by(self, column: str, value: str) -> Optional[LeaderboardEntry]:
        """First row whose ``column`` equals ``value``."""
        pass

    @abstractmethod
    async def insert(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        pass

    @abstractmethod
    async def update(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        pass

    @abstractmethod
    async def upsert(self, wallet: str, fields: dict[str, Any]) -> LeaderboardEntry:
        """Update the wallet's row, creating it with zeroed counters if absent."""
        pass

    async def close(self) -> None:
        pass
