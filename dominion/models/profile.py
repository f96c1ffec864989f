"""Profile, referral and achievement models."""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .leaderboard import LeaderboardEntry


class ReferralStats(BaseModel):
    referral_code: str
    referrals_count: int = 0
    referral_rewards: int = 0


class ReferralCodeUpdate(BaseModel):
    code: str = Field(description="Custom referral code, 1-20 characters")


class ProfileUpdate(BaseModel):
    """Body of ``PUT /v1/profile/{wallet}``."""
    model_config = ConfigDict(populate_by_name=True)

    username: str
    profilePicture: Optional[str] = Field(
        default=None,
        description="Image as a data URL, at most 2 MiB",
    )


class UsernameAvailability(BaseModel):
    username: str
    available: bool


class Achievement(BaseModel):
    id: str
    name: str
    description: str
    points: int
    unlocked: bool = False
    progress: int = 0
    max_progress: int


class UserProfile(BaseModel):
    """Leaderboard row plus derived achievement progress."""
    entry: LeaderboardEntry
    achievements: list[Achievement]
    next_milestone: int
    needs_username: bool = False
