"""Leaderboard service: points, counters and referrals."""

import logging
from typing import Optional

from dominion.errors import LedgerWriteError
from dominion.models import (
    ACTION_COUNTERS,
    LeaderboardAction,
    LeaderboardEntry,
)
from dominion.stores import LedgerStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def default_referral_code(wallet: str) -> str:
    return wallet[:8].upper()


def parse_action(action: str) -> LeaderboardAction:
    """Raise ValueError for anything but absorb, token_burn or nft_burn."""
    try:
        return LeaderboardAction(action)
    except ValueError:
        raise ValueError(f"Invalid action: {action}") from None


class LeaderboardService:
    """
    Service for recording actions and ranking wallets by points.

    Writes go to the hosted store when one is configured, else to the local
    store. ``award_points`` additionally falls back to the local store when a
    hosted write fails, and never raises.
    """

    def __init__(
        self,
        local: LedgerStore,
        hosted: Optional[LedgerStore] = None,
        limit: int = DEFAULT_LIMIT,
    ):
        self.local = local
        self.hosted = hosted
        self.limit = limit

    @property
    def store(self) -> LedgerStore:
        """The store that serves reads and REST writes."""
        return self.hosted if self.hosted is not None else self.local

    async def get_top(self, limit: Optional[int] = None) -> list[LeaderboardEntry]:
        """
        Get the top wallets by points, highest first.

        Raises:
            LedgerWriteError: If the store cannot be read
        """
        return await self.store.get_top(limit or self.limit)

    async def get_entry(self, wallet: str) -> Optional[LeaderboardEntry]:
        return await self.store.get_entry(wallet)

    async def record(
        self,
        wallet: str,
        action: LeaderboardAction,
        fees_paid: int = 0,
        referral_code: Optional[str] = None,
        store: Optional[LedgerStore] = None,
    ) -> LeaderboardEntry:
        """
        Add one action's points and counters to a wallet's row.

        The row is created on first use. A referral code given at creation
        time links the new row to the referrer and bumps the referrer's
        ``referrals_count``; later codes are ignored. A failed bump is logged
        and does not fail the new row.

        Args:
            wallet: Wallet address
            action: Action performed
            fees_paid: Fee paid for this action in lamports
            referral_code: Code of the referring wallet, if any
            store: Store to write to, defaults to ``self.store``

        Returns:
            The stored row after the update

        Raises:
            LedgerWriteError: If the store rejects the write
        """
        store = store or self.store
        existing = await store.get_entry(wallet)

        if existing is not None:
            updated = existing.apply_action(action, fees_paid)
            counter = ACTION_COUNTERS[action]
            return await store.update(
                wallet,
                {
                    "points": updated.points,
                    counter: getattr(updated, counter),
                    "total_fees_paid": updated.total_fees_paid,
                    "last_activity": updated.last_activity,
                    "updated_at": updated.updated_at,
                },
            )

        entry = LeaderboardEntry.new(wallet).apply_action(action, fees_paid)
        entry.referral_code = default_referral_code(wallet)

        referrer = None
        if referral_code:
            referrer = await store.find_by("referral_code", referral_code.strip())
            if referrer is not None and referrer.wallet != wallet:
                entry.referred_by = referrer.wallet
            else:
                referrer = None

        created = await store.insert(entry)
        logger.info(f"Created leaderboard entry for {wallet} via {store.name}")

        if referrer is not None:
            try:
                await store.update(
                    referrer.wallet,
                    {"referrals_count": referrer.referrals_count + 1},
                )
            except LedgerWriteError as e:
                logger.warning(f"Could not credit referral of {wallet} to {referrer.wallet}: {e}")
            else:
                logger.info(f"Credited referral of {wallet} to {referrer.wallet}")

        return created

    async def award_points(
        self,
        wallet: str,
        action: LeaderboardAction,
        fees_paid: int = 0,
        referral_code: Optional[str] = None,
    ) -> Optional[LeaderboardEntry]:
        """
        Record an action, falling back to the local store on failure.

        Returns:
            The updated row, or None if every store failed
        """
        if self.hosted is not None:
            try:
                return await self.record(
                    wallet, action, fees_paid, referral_code, store=self.hosted
                )
            except LedgerWriteError as e:
                logger.warning(
                    f"Hosted leaderboard write failed for {wallet}, using local store: {e}"
                )

        try:
            return await self.record(wallet, action, fees_paid, referral_code, store=self.local)
        except LedgerWriteError as e:
            logger.error(f"Failed to record {action.value} for {wallet}: {e}")
            return None

    async def close(self) -> None:
        if self.hosted is not None:
            await self.hosted.close()
        await self.local.close()
