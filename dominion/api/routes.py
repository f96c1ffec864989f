"""API routes for the cleanup service."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from dominion.errors import (
    InvalidProfileError,
    LedgerWriteError,
    NoEligibleAccountsError,
    ProfileError,
    ScanError,
    SimulationError,
    TransactionError,
    TransactionTooLargeError,
    WalletNotConnectedError,
)
from dominion.models import (
    ActionRequest,
    ActionResult,
    FeeQuote,
    LeaderboardEntry,
    LeaderboardUpdate,
    ProfileUpdate,
    ReferralCodeUpdate,
    ReferralStats,
    ScanResult,
    UserProfile,
    UsernameAvailability,
)
from dominion.services import (
    AccountScanner,
    CleanupService,
    LeaderboardService,
    ProfileService,
    TransactionBuilder,
)
from dominion.services.leaderboard_service import parse_action
from dominion.wallet import WalletAdapter
from .dependencies import (
    get_builder,
    get_cleanup_service,
    get_leaderboard_service,
    get_profile_service,
    get_scanner,
    get_wallet,
)

logger = logging.getLogger(__name__)

# Leaderboard REST contract: {"data": ...} on success, {"error": ...} otherwise
leaderboard_router = APIRouter(prefix="/api")

router = APIRouter(prefix="/v1")

EXAMPLE_WALLET = "5YjWWvfD1r2YaHqtHbzBYvyjWbpLYT8ebVgyngCJXFVU"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@leaderboard_router.get("/leaderboard")
async def get_leaderboard(
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    """
    Get the top wallets by points.

    Returns: {"data": [LeaderboardEntry, ...]} ordered by points descending
    """
    try:
        entries = await leaderboard.get_top()
    except LedgerWriteError as e:
        logger.error(f"Leaderboard read failed: {e}")
        return _error(500, "Database error")
    return {"data": [entry.model_dump() for entry in entries]}


@leaderboard_router.post("/leaderboard")
async def update_leaderboard(
    update: LeaderboardUpdate,
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    """
    Add one action to a wallet's row, creating it on first use.

    Returns: {"data": LeaderboardEntry}
    """
    if not update.wallet or not update.action:
        return _error(400, "Missing required fields")

    try:
        action = parse_action(update.action)
    except ValueError as e:
        return _error(400, str(e))

    try:
        entry = await leaderboard.record(
            wallet=update.wallet,
            action=action,
            fees_paid=update.feesPaid,
            referral_code=update.referralCode,
        )
    except LedgerWriteError as e:
        logger.error(f"Leaderboard write failed for {update.wallet}: {e}")
        return _error(500, "Database error")
    return {"data": entry.model_dump()}


@router.get("/accounts", response_model=ScanResult)
async def get_accounts(
    wallet: str = Query(..., description="Wallet address", examples=[EXAMPLE_WALLET]),
    metadata: bool = Query(True, description="Resolve token and NFT metadata"),
    scanner: AccountScanner = Depends(get_scanner),
) -> ScanResult:
    """
    List a wallet's token accounts partitioned into empty, fungible, NFT and skipped.
    """
    try:
        return await scanner.scan(wallet, with_metadata=metadata)
    except ScanError:
        raise HTTPException(status_code=502, detail="Failed to fetch token accounts")


@router.get("/fees/quote", response_model=FeeQuote)
async def get_fee_quote(
    action: str = Query(..., description="absorb, token_burn or nft_burn", examples=["absorb"]),
    count: int = Query(..., ge=0, description="Number of accounts processed"),
    wallet: str = Query(..., description="Fee payer address", examples=[EXAMPLE_WALLET]),
    builder: TransactionBuilder = Depends(get_builder),
) -> FeeQuote:
    """
    Quote the operator fee for an action and whether the payer can cover it.
    """
    try:
        leaderboard_action = parse_action(action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await builder.quote(leaderboard_action, count, wallet)


async def _run_action(coro) -> ActionResult:
    try:
        return await coro
    except WalletNotConnectedError:
        raise HTTPException(status_code=503, detail="No wallet configured")
    except NoEligibleAccountsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScanError:
        raise HTTPException(status_code=502, detail="Failed to fetch token accounts")
    except (SimulationError, TransactionTooLargeError) as e:
        logger.error(f"Transaction rejected: {e}")
        raise HTTPException(status_code=400, detail=e.user_message)
    except TransactionError as e:
        logger.error(f"Transaction failed: {e}")
        raise HTTPException(status_code=502, detail=e.user_message)


@router.post("/absorb", response_model=ActionResult)
async def absorb(
    request: Optional[ActionRequest] = Body(None),
    wallet: WalletAdapter = Depends(get_wallet),
    cleanup: CleanupService = Depends(get_cleanup_service),
) -> ActionResult:
    """Close every empty token account of the configured wallet."""
    referral_code = request.referralCode if request else None
    return await _run_action(cleanup.absorb(wallet, referral_code))


@router.post("/burn/tokens", response_model=ActionResult)
async def burn_tokens(
    request: Optional[ActionRequest] = Body(None),
    wallet: WalletAdapter = Depends(get_wallet),
    cleanup: CleanupService = Depends(get_cleanup_service),
) -> ActionResult:
    """Burn the full balance of the selected token accounts and close them."""
    request = request or ActionRequest()
    return await _run_action(
        cleanup.burn_tokens(wallet, request.accounts, request.referralCode)
    )


@router.post("/burn/nfts", response_model=ActionResult)
async def burn_nfts(
    request: Optional[ActionRequest] = Body(None),
    wallet: WalletAdapter = Depends(get_wallet),
    cleanup: CleanupService = Depends(get_cleanup_service),
) -> ActionResult:
    """Burn the selected legacy NFTs and close their accounts."""
    request = request or ActionRequest()
    return await _run_action(
        cleanup.burn_nfts(wallet, request.accounts, request.referralCode)
    )


@router.get("/profile/username/{username}/available", response_model=UsernameAvailability)
async def check_username(
    username: str,
    profiles: ProfileService = Depends(get_profile_service),
) -> UsernameAvailability:
    try:
        return await profiles.check_username(username)
    except LedgerWriteError:
        raise HTTPException(status_code=500, detail="Database error")


@router.get("/profile/{wallet}", response_model=UserProfile)
async def get_profile(
    wallet: str,
    profiles: ProfileService = Depends(get_profile_service),
) -> UserProfile:
    """
    Get a wallet's leaderboard row with achievement progress and next milestone.
    """
    try:
        return await profiles.get_profile(wallet)
    except LedgerWriteError:
        raise HTTPException(status_code=500, detail="Database error")


def _profile_error(e: ProfileError) -> HTTPException:
    if isinstance(e, InvalidProfileError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))


@router.put("/profile/{wallet}", response_model=LeaderboardEntry)
async def update_profile(
    wallet: str,
    update: ProfileUpdate,
    profiles: ProfileService = Depends(get_profile_service),
) -> LeaderboardEntry:
    """Set username (which also becomes the referral code) and profile picture."""
    try:
        return await profiles.update_profile(wallet, update.username, update.profilePicture)
    except ProfileError as e:
        raise _profile_error(e)
    except LedgerWriteError:
        raise HTTPException(status_code=500, detail="Database error")


@router.get("/referrals/{wallet}", response_model=ReferralStats)
async def get_referrals(
    wallet: str,
    profiles: ProfileService = Depends(get_profile_service),
) -> ReferralStats:
    try:
        return await profiles.get_referral_stats(wallet)
    except LedgerWriteError:
        raise HTTPException(status_code=500, detail="Database error")


@router.put("/referrals/{wallet}", response_model=ReferralStats)
async def set_referral_code(
    wallet: str,
    update: ReferralCodeUpdate,
    profiles: ProfileService = Depends(get_profile_service),
) -> ReferralStats:
    """Replace the wallet's referral code with a custom one."""
    try:
        return await profiles.set_referral_code(wallet, update.code)
    except ProfileError as e:
        raise _profile_error(e)
    except LedgerWriteError:
        raise HTTPException(status_code=500, detail="Database error")
