from .token_account import (
    AccountKind,
    TokenMetadata,
    TokenAccountRecord,
    ScanResult,
    MAX_MINT_ADDRESS_LENGTH,
)
from .leaderboard import (
    LeaderboardAction,
    LeaderboardEntry,
    LeaderboardUpdate,
    POINTS,
    ACTION_COUNTERS,
)
from .transaction import FeeQuote, BuiltTransaction, ActionRequest, ActionResult
from .profile import (
    ReferralStats,
    ReferralCodeUpdate,
    ProfileUpdate,
    UsernameAvailability,
    Achievement,
    UserProfile,
)

__all__ = [
    "AccountKind",
    "TokenMetadata",
    "TokenAccountRecord",
    "ScanResult",
    "MAX_MINT_ADDRESS_LENGTH",
    "LeaderboardAction",
    "LeaderboardEntry",
    "LeaderboardUpdate",
    "POINTS",
    "ACTION_COUNTERS",
    "FeeQuote",
    "BuiltTransaction",
    "ActionRequest",
    "ActionResult",
    "ReferralStats",
    "ReferralCodeUpdate",
    "ProfileUpdate",
    "UsernameAvailability",
    "Achievement",
    "UserProfile",
]
