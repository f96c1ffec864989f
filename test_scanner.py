"""Tests for token account scanning and classification."""

import pytest
from solders.pubkey import Pubkey

from dominion.errors import ScanError
from dominion.models import AccountKind, TokenAccountRecord
from dominion.services import AccountScanner
from dominion.services.scanner_service import (
    fallback_nft_metadata,
    fallback_token_metadata,
    partition_accounts,
)
from conftest import token_account_item

COMPRESSED_MINT = "C" * 45


def record(amount: int, decimals: int = 0, mint: str | None = None, frozen: bool = False):
    return TokenAccountRecord.from_rpc(
        token_account_item(
            str(Pubkey.new_unique()),
            mint or str(Pubkey.new_unique()),
            amount,
            decimals,
            frozen,
        )
    )


def test_from_rpc_parses_raw_amount_and_frozen_state():
    item = token_account_item("Acct111", "Mint111", 1_500_000, decimals=6, frozen=True)
    parsed = TokenAccountRecord.from_rpc(item)

    assert parsed.address == "Acct111"
    assert parsed.mint == "Mint111"
    assert parsed.amount == 1_500_000
    assert parsed.decimals == 6
    assert parsed.ui_amount == 1.5
    assert parsed.frozen is True
    assert parsed.program_id == "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


@pytest.mark.parametrize("decimals", [0, 2, 6, 9])
def test_every_zero_balance_is_empty_and_no_nonzero_is(decimals):
    for amount in (0, 1, 2, 10 ** decimals, 123_456_789):
        kind = record(amount, decimals).kind
        assert (kind == AccountKind.EMPTY) == (amount == 0)


def test_classification():
    assert record(1, 0).kind == AccountKind.NFT
    assert record(1, 0, mint=COMPRESSED_MINT).kind == AccountKind.COMPRESSED_SUSPECT
    assert record(1, 6).kind == AccountKind.FUNGIBLE
    assert record(2, 0).kind == AccountKind.FUNGIBLE
    assert record(0, 0).kind == AccountKind.EMPTY


def test_partition_accounts():
    records = [record(0), record(0, 6), record(1), record(5, 2), record(1, mint=COMPRESSED_MINT)]
    result = partition_accounts("owner", records)

    assert len(result.empty) == 2
    assert len(result.nfts) == 1
    assert len(result.fungible) == 1
    assert len(result.skipped) == 1
    assert result.total == 5
    assert result.addresses() == {r.address for r in records}


def test_fallback_names():
    mint = "So11111111111111111111111111111111111111112"
    token = fallback_token_metadata(mint)
    assert token.name == "Token So111111...1112"
    assert token.symbol == "SO111111"

    nft = fallback_nft_metadata("AbCdEfGh")
    assert nft.name == "NFT #AbCd"


async def test_scan_partitions_node_accounts(node, datasource, connected_wallet):
    empty = node.add_account(0, decimals=6)
    frozen_empty = node.add_account(0, frozen=True)
    token = node.add_account(2_000_000, decimals=6)
    nft = node.add_account(1)
    node.token_accounts.append(
        token_account_item(str(Pubkey.new_unique()), COMPRESSED_MINT, 1, 0)
    )

    scanner = AccountScanner(datasource)
    result = await scanner.scan(str(connected_wallet.public_key), with_metadata=False)

    assert {r.address for r in result.empty} == {empty, frozen_empty}
    assert [r.address for r in result.fungible] == [token]
    assert [r.address for r in result.nfts] == [nft]
    assert len(result.skipped) == 1
    assert any(r.frozen for r in result.empty)
    assert node.calls == ["getTokenAccountsByOwner"]


async def test_scan_error_on_rpc_failure(node, datasource):
    node.fail_methods.add("getTokenAccountsByOwner")
    scanner = AccountScanner(datasource)

    with pytest.raises(ScanError):
        await scanner.scan(str(Pubkey.new_unique()))


class FailingMetadata:
    async def get_token_metadata(self, mint):
        raise RuntimeError("metadata down")

    async def get_nft_metadata(self, mint):
        return None


async def test_scan_falls_back_when_metadata_unavailable(node, datasource):
    token = node.add_account(42, decimals=0)
    nft = node.add_account(1)

    scanner = AccountScanner(datasource, FailingMetadata())
    result = await scanner.scan(str(Pubkey.new_unique()))

    assert result.fungible[0].address == token
    assert result.fungible[0].metadata.name.startswith("Token ")
    assert result.nfts[0].metadata.name == f"NFT #{nft[:4]}"
