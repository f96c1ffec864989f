"""End-to-end tests for absorb, token burn and NFT burn against the fake node."""

import pytest

from dominion.errors import LedgerWriteError, NoEligibleAccountsError, SimulationError
from dominion.models import LeaderboardAction
from dominion.services import (
    AccountScanner,
    CleanupService,
    LeaderboardService,
    SubmissionPipeline,
    TransactionBuilder,
)
from dominion.services.transaction_builder import compute_absorb_fee, compute_burn_fee
from conftest import RENT_EXEMPTION


class RecordingLeaderboard(LeaderboardService):
    def __init__(self, local, hosted=None):
        super().__init__(local=local, hosted=hosted)
        self.awards = []
        self.referral_codes = []

    async def award_points(self, wallet, action, fees_paid=0, referral_code=None):
        self.awards.append((wallet, action, fees_paid))
        self.referral_codes.append(referral_code)
        return await super().award_points(wallet, action, fees_paid, referral_code)


class BrokenStore:
    name = "broken"

    async def get_entry(self, wallet):
        raise LedgerWriteError("store offline")

    async def close(self):
        pass


async def no_sleep(_):
    return None


@pytest.fixture
def leaderboard(local_store):
    return RecordingLeaderboard(local_store)


@pytest.fixture
def cleanup(datasource, config, leaderboard):
    return CleanupService(
        AccountScanner(datasource),
        TransactionBuilder(datasource, config),
        SubmissionPipeline(datasource, sleep=no_sleep),
        leaderboard,
    )


async def test_absorb(node, cleanup, leaderboard, local_store, connected_wallet):
    empties = {node.add_account(0) for _ in range(3)}
    token = node.add_account(10, decimals=2)
    owner = str(connected_wallet.public_key)

    result = await cleanup.absorb(connected_wallet)

    fee = compute_absorb_fee(RENT_EXEMPTION, 3, 2.0)
    assert set(result.processedAccounts) == empties
    assert result.feeLamports == fee
    assert result.feePaid is True
    assert result.pointsAwarded == 30

    # one award per closed account, fee on the first only
    assert leaderboard.awards == [
        (owner, LeaderboardAction.ABSORB, fee),
        (owner, LeaderboardAction.ABSORB, 0),
        (owner, LeaderboardAction.ABSORB, 0),
    ]

    entry = await local_store.get_entry(owner)
    assert entry.points == 30
    assert entry.absorbs == 3
    assert entry.total_fees_paid == fee

    # rescan no longer lists processed accounts
    assert result.remaining is not None
    assert result.remaining.addresses() == {token}
    assert not empties & result.remaining.addresses()


@pytest.mark.parametrize("count", [1, 2, 4])
async def test_nft_burn_awards_once_per_item(node, cleanup, leaderboard, connected_wallet, count):
    nfts = [node.add_account(1) for _ in range(count)]

    result = await cleanup.burn_nfts(connected_wallet)

    assert sorted(result.processedAccounts) == sorted(nfts)
    assert [a[1] for a in leaderboard.awards] == [LeaderboardAction.NFT_BURN] * count
    assert [a[2] for a in leaderboard.awards] == [compute_burn_fee(RENT_EXEMPTION, 2.0)] + [0] * (count - 1)
    assert result.pointsAwarded == 200 * count


async def test_token_burn_selection(node, cleanup, leaderboard, connected_wallet):
    first = node.add_account(500, decimals=2)
    second = node.add_account(7, decimals=1)
    node.add_account(1)

    result = await cleanup.burn_tokens(connected_wallet, [second, "NotACandidate"])

    assert result.processedAccounts == [second]
    assert len(leaderboard.awards) == 1
    assert first in result.remaining.addresses()
    assert second not in result.remaining.addresses()


async def test_nothing_to_absorb(node, cleanup, connected_wallet):
    node.add_account(0, frozen=True)

    with pytest.raises(NoEligibleAccountsError):
        await cleanup.absorb(connected_wallet)

    assert node.sent == []


async def test_failed_simulation_awards_nothing(node, cleanup, leaderboard, connected_wallet):
    node.add_account(0)
    node.simulation_err = "AccountNotFound"

    with pytest.raises(SimulationError):
        await cleanup.absorb(connected_wallet)

    assert leaderboard.awards == []


async def test_fee_skipped_when_balance_low(node, cleanup, local_store, connected_wallet):
    node.add_account(0)
    node.balance = 1000

    result = await cleanup.absorb(connected_wallet)

    assert result.feePaid is False
    entry = await local_store.get_entry(str(connected_wallet.public_key))
    assert entry.total_fees_paid == 0
    assert entry.points == 10


async def test_ledger_failure_does_not_fail_action(
    node, datasource, config, connected_wallet
):
    leaderboard = LeaderboardService(local=BrokenStore())
    cleanup = CleanupService(
        AccountScanner(datasource),
        TransactionBuilder(datasource, config),
        SubmissionPipeline(datasource, sleep=no_sleep),
        leaderboard,
    )
    node.add_account(0)

    result = await cleanup.absorb(connected_wallet)

    assert result.signature
    assert result.pointsAwarded == 0


async def test_hosted_failure_falls_back_to_local(
    node, datasource, config, local_store, hosted_store, postgrest, connected_wallet
):
    postgrest.fail = True
    leaderboard = LeaderboardService(local=local_store, hosted=hosted_store)
    cleanup = CleanupService(
        AccountScanner(datasource),
        TransactionBuilder(datasource, config),
        SubmissionPipeline(datasource, sleep=no_sleep),
        leaderboard,
    )
    node.add_account(0)
    node.add_account(0)

    result = await cleanup.absorb(connected_wallet)

    entry = await local_store.get_entry(str(connected_wallet.public_key))
    assert result.pointsAwarded == 20
    assert entry.absorbs == 2
    assert entry.total_fees_paid == compute_absorb_fee(RENT_EXEMPTION, 2, 2.0)


async def test_referral_code_credited_on_first_award(
    node, cleanup, leaderboard, local_store, connected_wallet
):
    referrer = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
    await local_store.upsert(referrer, {"referral_code": "BIGBOSS"})
    node.add_account(1)
    node.add_account(1)

    await cleanup.burn_nfts(connected_wallet, referral_code="BIGBOSS")

    assert leaderboard.referral_codes == ["BIGBOSS", None]
    entry = await local_store.get_entry(str(connected_wallet.public_key))
    assert entry.referred_by == referrer
    assert entry.nft_burns == 2
    assert (await local_store.get_entry(referrer)).referrals_count == 1


async def test_malformed_hosted_row_falls_back_to_local(
    node, datasource, config, local_store, hosted_store, postgrest, connected_wallet
):
    owner = str(connected_wallet.public_key)
    postgrest.rows.append({"id": "row-1", "wallet": owner, "points": 10, "referrals_count": None})
    leaderboard = LeaderboardService(local=local_store, hosted=hosted_store)
    cleanup = CleanupService(
        AccountScanner(datasource),
        TransactionBuilder(datasource, config),
        SubmissionPipeline(datasource, sleep=no_sleep),
        leaderboard,
    )
    node.add_account(0)

    result = await cleanup.absorb(connected_wallet)

    assert result.pointsAwarded == 10
    assert (await local_store.get_entry(owner)).absorbs == 1
