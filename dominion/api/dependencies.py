"""FastAPI dependencies for dependency injection."""

from fastapi import HTTPException

from dominion.services import (
    AccountScanner,
    CleanupService,
    LeaderboardService,
    ProfileService,
    TransactionBuilder,
)
from dominion.wallet import WalletAdapter

# Global instances - initialized at app startup
_scanner: AccountScanner | None = None
_builder: TransactionBuilder | None = None
_cleanup: CleanupService | None = None
_leaderboard: LeaderboardService | None = None
_profiles: ProfileService | None = None
_wallet: WalletAdapter | None = None


def set_services(
    scanner: AccountScanner,
    builder: TransactionBuilder,
    cleanup: CleanupService,
    leaderboard: LeaderboardService,
    profiles: ProfileService,
) -> None:
    """Set the global service instances."""
    global _scanner, _builder, _cleanup, _leaderboard, _profiles
    _scanner = scanner
    _builder = builder
    _cleanup = cleanup
    _leaderboard = leaderboard
    _profiles = profiles


def get_scanner() -> AccountScanner:
    if _scanner is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _scanner


def get_builder() -> TransactionBuilder:
    if _builder is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _builder


def get_cleanup_service() -> CleanupService:
    if _cleanup is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _cleanup


def get_leaderboard_service() -> LeaderboardService:
    if _leaderboard is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _leaderboard


def get_profile_service() -> ProfileService:
    if _profiles is None:
        raise RuntimeError("Services not initialized. Call set_services() first.")
    return _profiles


def set_wallet(wallet: WalletAdapter | None) -> None:
    """Set the wallet used by the action endpoints; None disables them."""
    global _wallet
    _wallet = wallet


def get_wallet() -> WalletAdapter:
    """Get the connected wallet, answering 503 when none is configured."""
    if _wallet is None or not _wallet.connected:
        raise HTTPException(status_code=503, detail="No wallet configured")
    return _wallet
