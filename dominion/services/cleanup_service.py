"""Absorb, token burn and NFT burn flows."""

import logging
from typing import Optional

from dominion.errors import NoEligibleAccountsError, ScanError
from dominion.models import (
    POINTS,
    ActionResult,
    BuiltTransaction,
    LeaderboardAction,
    ScanResult,
    TokenAccountRecord,
)
from dominion.wallet import WalletAdapter
from .leaderboard_service import LeaderboardService
from .scanner_service import AccountScanner
from .submission_service import SubmissionPipeline
from .transaction_builder import TransactionBuilder

logger = logging.getLogger(__name__)


def select_accounts(
    candidates: list[TokenAccountRecord], addresses: Optional[list[str]]
) -> list[TokenAccountRecord]:
    """Restrict candidates to the requested addresses, or all when None."""
    if addresses is None:
        return list(candidates)
    wanted = set(addresses)
    selected = [record for record in candidates if record.address in wanted]
    missing = wanted - {record.address for record in selected}
    if missing:
        logger.warning(f"Ignoring {len(missing)} requested accounts that are not candidates")
    return selected


class CleanupService:
    """
    Runs one cleanup action end to end for the connected wallet.

    Scan, build, submit and confirm, then award points once per processed
    account and rescan. Points are best effort: a ledger failure never
    undoes or fails a confirmed transaction.
    """

    def __init__(
        self,
        scanner: AccountScanner,
        builder: TransactionBuilder,
        pipeline: SubmissionPipeline,
        leaderboard: LeaderboardService,
        simulate: bool = True,
    ):
        self.scanner = scanner
        self.builder = builder
        self.pipeline = pipeline
        self.leaderboard = leaderboard
        self.simulate = simulate

    async def absorb(
        self, wallet: WalletAdapter, referral_code: Optional[str] = None
    ) -> ActionResult:
        """Close every empty token account of the wallet."""
        owner = wallet.public_key
        scan = await self.scanner.scan(str(owner), with_metadata=False)
        built = await self.builder.build_absorb(owner, scan.empty)
        return await self._execute(wallet, built, referral_code)

    async def burn_tokens(
        self,
        wallet: WalletAdapter,
        addresses: Optional[list[str]] = None,
        referral_code: Optional[str] = None,
    ) -> ActionResult:
        """Burn and close the selected fungible token accounts."""
        owner = wallet.public_key
        scan = await self.scanner.scan(str(owner), with_metadata=False)
        built = await self.builder.build_token_burn(
            owner, select_accounts(scan.fungible, addresses)
        )
        return await self._execute(wallet, built, referral_code)

    async def burn_nfts(
        self,
        wallet: WalletAdapter,
        addresses: Optional[list[str]] = None,
        referral_code: Optional[str] = None,
    ) -> ActionResult:
        """Burn and close the selected legacy NFTs."""
        owner = wallet.public_key
        scan = await self.scanner.scan(str(owner), with_metadata=False)
        built = await self.builder.build_nft_burn(
            owner, select_accounts(scan.nfts, addresses)
        )
        return await self._execute(wallet, built, referral_code)

    async def _execute(
        self,
        wallet: WalletAdapter,
        built: BuiltTransaction,
        referral_code: Optional[str] = None,
    ) -> ActionResult:
        action = built.action
        if not built.accounts:
            raise NoEligibleAccountsError(f"No accounts eligible for {action.value}")

        owner = str(wallet.public_key)
        signature = await self.pipeline.submit(built.instructions, wallet, simulate=self.simulate)
        logger.info(
            f"{action.value} confirmed for {owner}: {len(built.accounts)} accounts, "
            f"fee {built.fee_paid} lamports, signature {signature}"
        )

        points = await self._award(
            owner, action, len(built.accounts), built.fee_paid, referral_code
        )
        remaining = await self._rescan(owner)

        return ActionResult(
            action=action,
            signature=signature,
            processedAccounts=[record.address for record in built.accounts],
            feeLamports=built.fee.feeLamports,
            feePaid=built.fee.feeIncluded,
            pointsAwarded=points,
            remaining=remaining,
        )

    async def _award(
        self,
        owner: str,
        action: LeaderboardAction,
        count: int,
        fee_paid: int,
        referral_code: Optional[str] = None,
    ) -> int:
        # One award per processed account; only the first carries the fee and referral
        awarded = 0
        for i in range(count):
            first = i == 0
            entry = await self.leaderboard.award_points(
                owner,
                action,
                fee_paid if first else 0,
                referral_code if first else None,
            )
            if entry is not None:
                awarded += POINTS[action]
        return awarded

    async def _rescan(self, owner: str) -> Optional[ScanResult]:
        try:
            return await self.scanner.scan(owner, with_metadata=False)
        except ScanError as e:
            logger.warning(f"Rescan after action failed for {owner}: {e}")
            return None
