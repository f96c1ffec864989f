#!/usr/bin/env python3
"""
Rugal's Dominion command line

Scan a wallet, absorb empty token accounts, burn tokens or NFTs, and show
the leaderboard.

Usage:
    dominion scan <wallet> [--no-metadata]
    dominion absorb
    dominion burn-tokens [account ...]
    dominion burn-nfts [account ...]
    dominion leaderboard [--limit=50]
    dominion profile <wallet>

The action commands sign with WALLET_PRIVATE_KEY or WALLET_KEYPAIR_PATH.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from tabulate import tabulate

from dominion.config import Config
from dominion.datasources import SolanaRpcDataSource
from dominion.errors import DominionError, NoEligibleAccountsError, ScanError, TransactionError
from dominion.models import ActionResult, ScanResult, TokenAccountRecord
from dominion.services import (
    AccountScanner,
    CleanupService,
    LeaderboardService,
    MetadataService,
    ProfileService,
    SubmissionPipeline,
    TransactionBuilder,
)
from dominion.stores import LocalLedgerStore, SupabaseLedgerStore
from dominion.wallet import load_wallet

LAMPORTS_PER_SOL = 1_000_000_000


class Dominion:
    """Services wired from configuration for one CLI run"""

    def __init__(self, config: Config):
        self.config = config
        self.datasource = SolanaRpcDataSource(config.rpc_url, commitment=config.commitment)
        self.metadata = MetadataService(self.datasource)
        self.scanner = AccountScanner(self.datasource, self.metadata)
        self.builder = TransactionBuilder(self.datasource, config)
        hosted = None
        if config.supabase_configured:
            hosted = SupabaseLedgerStore(config.supabase_url, config.supabase_anon_key)
        self.leaderboard = LeaderboardService(
            local=LocalLedgerStore(config.local_ledger_path),
            hosted=hosted,
            limit=config.leaderboard_limit,
        )
        self.profiles = ProfileService(self.leaderboard)
        self.cleanup = CleanupService(
            self.scanner,
            self.builder,
            SubmissionPipeline(self.datasource, confirm_timeout=config.confirm_timeout),
            self.leaderboard,
            simulate=config.simulate_before_send,
        )

    async def close(self):
        await self.metadata.close()
        await self.leaderboard.close()
        await self.datasource.close()


def format_sol(lamports: int) -> str:
    """Format lamports as SOL"""
    return f"{lamports / LAMPORTS_PER_SOL:.6f} SOL"


def short(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}"


def print_accounts(records: list[TokenAccountRecord], title: str):
    """Print token account table"""
    if not records:
        return

    print(f"\n{title} ({len(records)}):")
    print("-" * 80)

    table_data = []
    for record in records:
        metadata = record.metadata
        table_data.append([
            short(record.address),
            (metadata.name if metadata else None) or short(record.mint),
            (metadata.symbol if metadata else None) or "",
            f"{record.ui_amount:,.4f}".rstrip("0").rstrip("."),
            "yes" if record.frozen else "",
        ])

    print(tabulate(
        table_data,
        headers=["Account", "Name", "Symbol", "Amount", "Frozen"],
        tablefmt="grid"
    ))


def print_scan(result: ScanResult, rent: Optional[int] = None):
    print("=" * 80)
    print(f"Wallet: {result.owner}")
    print(f"Token accounts: {result.total}")
    if rent is not None:
        print(f"Reclaimable rent: {format_sol(rent * len(result.empty))} "
              f"from {len(result.empty)} empty accounts")
    print("=" * 80)

    print_accounts(result.empty, "EMPTY ACCOUNTS")
    print_accounts(result.fungible, "TOKENS")
    print_accounts(result.nfts, "NFTS")
    if result.skipped:
        print(f"\nSkipped {len(result.skipped)} suspected compressed NFTs")


def print_result(result: ActionResult):
    print("=" * 80)
    print(f"{result.action.value.upper()} CONFIRMED")
    print("=" * 80)
    print(f"Signature:  {result.signature}")
    print(f"Accounts:   {len(result.processedAccounts)}")
    if result.feePaid:
        print(f"Fee:        {format_sol(result.feeLamports)}")
    else:
        print("Fee:        skipped (insufficient balance)")
    print(f"Points:     +{result.pointsAwarded}")


async def cmd_scan(dominion: Dominion, args) -> int:
    try:
        result = await dominion.scanner.scan(args.wallet, with_metadata=not args.no_metadata)
    except ScanError as e:
        logging.getLogger(__name__).error(str(e))
        result = ScanResult(owner=args.wallet)
    rent = await dominion.builder.get_rent_exemption() if result.empty else None
    print_scan(result, rent)
    return 0


async def cmd_action(dominion: Dominion, args) -> int:
    wallet = load_wallet(dominion.config)
    if wallet is None:
        print("Error: set WALLET_PRIVATE_KEY or WALLET_KEYPAIR_PATH")
        return 1

    await wallet.connect()
    try:
        accounts = getattr(args, "accounts", None) or None
        if args.command == "absorb":
            result = await dominion.cleanup.absorb(wallet, args.referral_code)
        elif args.command == "burn-tokens":
            result = await dominion.cleanup.burn_tokens(wallet, accounts, args.referral_code)
        else:
            result = await dominion.cleanup.burn_nfts(wallet, accounts, args.referral_code)
    except NoEligibleAccountsError as e:
        print(str(e))
        return 0
    except TransactionError as e:
        logging.getLogger(__name__).error(str(e))
        print(f"Error: {e.user_message}")
        return 1
    finally:
        await wallet.disconnect()

    print_result(result)
    if result.remaining is not None:
        print_scan(result.remaining)
    return 0


async def cmd_leaderboard(dominion: Dominion, args) -> int:
    entries = await dominion.leaderboard.get_top(args.limit)
    table_data = [
        [
            i + 1,
            entry.username or short(entry.wallet),
            entry.points,
            entry.absorbs,
            entry.token_burns,
            entry.nft_burns,
            format_sol(entry.total_fees_paid),
        ]
        for i, entry in enumerate(entries)
    ]
    print(tabulate(
        table_data,
        headers=["Rank", "Wallet", "Points", "Absorbs", "Token burns", "NFT burns", "Fees"],
        tablefmt="grid"
    ))
    return 0


async def cmd_profile(dominion: Dominion, args) -> int:
    profile = await dominion.profiles.get_profile(args.wallet)
    referrals = await dominion.profiles.get_referral_stats(args.wallet)
    entry = profile.entry

    print("=" * 80)
    print(f"Wallet:    {entry.wallet}")
    print(f"Username:  {entry.username or '(not set)'}")
    print(f"Points:    {entry.points} (next milestone {profile.next_milestone})")
    print(f"Referral:  {referrals.referral_code} ({referrals.referrals_count} referrals)")
    print("=" * 80)

    print(tabulate(
        [
            [a.name, a.description, f"{a.progress}/{a.max_progress}", "yes" if a.unlocked else ""]
            for a in profile.achievements
        ],
        headers=["Achievement", "Description", "Progress", "Unlocked"],
        tablefmt="grid"
    ))
    return 0


COMMANDS = {
    "scan": cmd_scan,
    "absorb": cmd_action,
    "burn-tokens": cmd_action,
    "burn-nfts": cmd_action,
    "leaderboard": cmd_leaderboard,
    "profile": cmd_profile,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reclaim rent, burn tokens and NFTs, and climb the leaderboard"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="List a wallet's token accounts")
    scan.add_argument("wallet", help="Wallet address")
    scan.add_argument(
        "--no-metadata",
        action="store_true",
        help="Skip name and image lookups"
    )

    absorb = subparsers.add_parser("absorb", help="Close every empty token account")

    burn_tokens = subparsers.add_parser("burn-tokens", help="Burn and close token accounts")
    burn_tokens.add_argument("accounts", nargs="*", help="Token accounts (default: all)")

    burn_nfts = subparsers.add_parser("burn-nfts", help="Burn NFTs and close their accounts")
    burn_nfts.add_argument("accounts", nargs="*", help="NFT token accounts (default: all)")

    for action in (absorb, burn_tokens, burn_nfts):
        action.add_argument(
            "--referral-code",
            help="Referrer's code, credited on the wallet's first action"
        )

    leaderboard = subparsers.add_parser("leaderboard", help="Show the top wallets")
    leaderboard.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Number of rows (default: 50)"
    )

    profile = subparsers.add_parser("profile", help="Show a wallet's profile")
    profile.add_argument("wallet", help="Wallet address")

    return parser


async def run(args, config: Config) -> int:
    dominion = Dominion(config)
    try:
        return await COMMANDS[args.command](dominion, args)
    except DominionError as e:
        print(f"Error: {e}")
        return 1
    finally:
        await dominion.close()


def main():
    """Main entry point"""
    args = build_parser().parse_args()
    config = Config.from_env()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    sys.exit(asyncio.run(run(args, config)))


if __name__ == "__main__":
    main()
