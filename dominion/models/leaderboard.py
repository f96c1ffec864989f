"""Leaderboard models for the points ledger."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class LeaderboardAction(str, Enum):
    """Actions that earn points."""
    ABSORB = "absorb"
    TOKEN_BURN = "token_burn"
    NFT_BURN = "nft_burn"


# Points per unit of action
POINTS: dict[LeaderboardAction, int] = {
    LeaderboardAction.ABSORB: 10,
    LeaderboardAction.TOKEN_BURN: 50,
    LeaderboardAction.NFT_BURN: 200,
}

# Counter column bumped by each action
ACTION_COUNTERS: dict[LeaderboardAction, str] = {
    LeaderboardAction.ABSORB: "absorbs",
    LeaderboardAction.TOKEN_BURN: "token_burns",
    LeaderboardAction.NFT_BURN: "nft_burns",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LeaderboardEntry(BaseModel):
    """
    A row of the ``leaderboard_entries`` table.

    One row per wallet. Counters only ever grow.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    wallet: str
    points: int = 0
    absorbs: int = 0
    token_burns: int = 0
    nft_burns: int = 0
    total_fees_paid: int = Field(default=0, description="Lamports paid in fees")
    username: Optional[str] = None
    profile_picture: Optional[str] = None
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    referrals_count: int = 0
    referral_rewards: int = 0
    last_activity: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def new(cls, wallet: str) -> "LeaderboardEntry":
        now = utc_now_iso()
        return cls(
            id=wallet,
            wallet=wallet,
            last_activity=now,
            created_at=now,
            updated_at=now,
        )

    def apply_action(self, action: LeaderboardAction, fees_paid: int = 0) -> "LeaderboardEntry":
        """Return a copy with the action's points and counters added."""
        counter = ACTION_COUNTERS[action]
        now = utc_now_iso()
        return self.model_copy(
            update={
                "points": self.points + POINTS[action],
                counter: getattr(self, counter) + 1,
                "total_fees_paid": self.total_fees_paid + max(fees_paid, 0),
                "last_activity": now,
                "updated_at": now,
            }
        )


class LeaderboardUpdate(BaseModel):
    """Body of ``POST /api/leaderboard``."""
    model_config = ConfigDict(populate_by_name=True)

    wallet: Optional[str] = None
    action: Optional[str] = None
    feesPaid: int = Field(default=0, ge=0, description="Fee paid in lamports")
    referralCode: Optional[str] = None
