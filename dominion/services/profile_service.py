"""Usernames, profile pictures, referral codes and achievements."""

import base64
import binascii
import logging
import re
from typing import Optional

from dominion.errors import (
    InvalidProfileError,
    ReferralCodeTakenError,
    UsernameUnavailableError,
)
from dominion.models import (
    Achievement,
    LeaderboardEntry,
    ReferralStats,
    UserProfile,
    UsernameAvailability,
)
from .leaderboard_service import LeaderboardService, default_referral_code

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]{3,20}$")
DATA_URL_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,(?P<payload>.+)$", re.DOTALL)
MAX_PICTURE_BYTES = 2 * 1024 * 1024
MAX_REFERRAL_CODE_LENGTH = 20

MILESTONES = [100, 250, 500, 1000, 2500, 5000, 10000]

# (id, name, description, points, counter field, target)
ACHIEVEMENTS = [
    ("first_burn", "First Blood", "Burn your first token", 50, "token_burns", 1),
    ("burn_master", "Burn Master", "Burn 10 tokens", 500, "token_burns", 10),
    ("nft_destroyer", "NFT Destroyer", "Burn 5 NFTs", 1000, "nft_burns", 5),
    ("rent_absorber", "Rent Absorber", "Absorb 20 empty accounts", 200, "absorbs", 20),
    ("arena_champion", "Arena Champion", "Reach 1000 points", 1000, "points", 1000),
]


def normalize_username(username: str) -> str:
    return username.strip().lower()


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


def validate_profile_picture(picture: str) -> None:
    """
    Accept only base64 image data URLs of at most 2 MiB decoded.

    Raises:
        InvalidProfileError: Otherwise
    """
    match = DATA_URL_PATTERN.match(picture)
    if not match:
        raise InvalidProfileError("Profile picture must be an image data URL")
    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidProfileError("Profile picture is not valid base64") from e
    if len(data) > MAX_PICTURE_BYTES:
        raise InvalidProfileError("Profile picture must be 2 MiB or smaller")


def compute_achievements(entry: LeaderboardEntry) -> list[Achievement]:
    achievements = []
    for achievement_id, name, description, points, field, target in ACHIEVEMENTS:
        value = getattr(entry, field)
        achievements.append(
            Achievement(
                id=achievement_id,
                name=name,
                description=description,
                points=points,
                unlocked=value >= target,
                progress=min(value, target),
                max_progress=target,
            )
        )
    return achievements


def next_milestone(points: int) -> int:
    """First milestone above ``points``, capped at the last one."""
    for milestone in MILESTONES:
        if points < milestone:
            return milestone
    return MILESTONES[-1]


class ProfileService:
    """Profile and referral reads and writes on the active leaderboard store."""

    def __init__(self, leaderboard: LeaderboardService):
        self.leaderboard = leaderboard

    @property
    def store(self):
        return self.leaderboard.store

    async def _entry_or_blank(self, wallet: str) -> LeaderboardEntry:
        entry = await self.store.get_entry(wallet)
        return entry if entry is not None else LeaderboardEntry.new(wallet)

    async def get_profile(self, wallet: str) -> UserProfile:
        entry = await self._entry_or_blank(wallet)
        return UserProfile(
            entry=entry,
            achievements=compute_achievements(entry),
            next_milestone=next_milestone(entry.points),
            needs_username=entry.username is None,
        )

    async def check_username(self, username: str, wallet: Optional[str] = None) -> UsernameAvailability:
        """
        Report whether a username is valid and free.

        A name already held by ``wallet`` itself counts as available.
        """
        normalized = normalize_username(username)
        if not is_valid_username(normalized):
            return UsernameAvailability(username=normalized, available=False)
        holder = await self.store.find_by("username", normalized)
        available = holder is None or (wallet is not None and holder.wallet == wallet)
        return UsernameAvailability(username=normalized, available=available)

    async def update_profile(
        self,
        wallet: str,
        username: str,
        profile_picture: Optional[str] = None,
    ) -> LeaderboardEntry:
        """
        Set the wallet's username and optional picture.

        The username also becomes the wallet's referral code.

        Raises:
            InvalidProfileError: Bad username format or picture
            UsernameUnavailableError: Username held by another wallet
            ReferralCodeTakenError: Another wallet uses the username as its referral code
        """
        normalized = normalize_username(username)
        if not is_valid_username(normalized):
            raise InvalidProfileError(
                "Username must be 3-20 characters of lowercase letters, digits or underscores"
            )
        if profile_picture:
            validate_profile_picture(profile_picture)

        availability = await self.check_username(normalized, wallet=wallet)
        if not availability.available:
            raise UsernameUnavailableError(f"Username {normalized} is taken")

        # Username doubles as the referral code
        code_holder = await self.store.find_by("referral_code", normalized)
        if code_holder is not None and code_holder.wallet != wallet:
            raise ReferralCodeTakenError(f"Referral code {normalized} is taken")

        fields = {"username": normalized, "referral_code": normalized}
        if profile_picture:
            fields["profile_picture"] = profile_picture

        entry = await self.store.upsert(wallet, fields)
        logger.info(f"Updated profile for {wallet}: username={normalized}")
        return entry

    async def get_referral_stats(self, wallet: str) -> ReferralStats:
        entry = await self.store.get_entry(wallet)
        if entry is None:
            return ReferralStats(referral_code=default_referral_code(wallet))
        return ReferralStats(
            referral_code=entry.referral_code or default_referral_code(wallet),
            referrals_count=entry.referrals_count,
            referral_rewards=entry.referral_rewards,
        )

    async def set_referral_code(self, wallet: str, code: str) -> ReferralStats:
        """
        Replace the wallet's referral code.

        Raises:
            InvalidProfileError: Empty or longer than 20 characters
            ReferralCodeTakenError: Code held by another wallet
        """
        code = code.strip()
        if not code or len(code) > MAX_REFERRAL_CODE_LENGTH:
            raise InvalidProfileError("Referral code must be 1-20 characters")

        holder = await self.store.find_by("referral_code", code)
        if holder is not None and holder.wallet != wallet:
            raise ReferralCodeTakenError(f"Referral code {code} is taken")

        entry = await self.store.upsert(wallet, {"referral_code": code})
        logger.info(f"Set referral code for {wallet}")
        return ReferralStats(
            referral_code=entry.referral_code or code,
            referrals_count=entry.referrals_count,
            referral_rewards=entry.referral_rewards,
        )
