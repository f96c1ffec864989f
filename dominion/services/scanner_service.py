"""Token account enumeration and classification."""

import asyncio
import logging
from typing import Optional

import httpx

from dominion.datasources import RpcDataSource
from dominion.errors import RpcError, ScanError
from dominion.models import AccountKind, ScanResult, TokenAccountRecord, TokenMetadata
from .metadata_service import MetadataService, PLACEHOLDER_IMAGE

logger = logging.getLogger(__name__)


def fallback_token_metadata(mint: str) -> TokenMetadata:
    return TokenMetadata(
        name=f"Token {mint[:8]}...{mint[-4:]}",
        symbol=mint[:8].upper(),
        image=PLACEHOLDER_IMAGE,
    )


def fallback_nft_metadata(address: str) -> TokenMetadata:
    return TokenMetadata(
        name=f"NFT #{address[:4]}",
        image=PLACEHOLDER_IMAGE,
        collection="Unknown Collection",
    )


def partition_accounts(owner: str, records: list[TokenAccountRecord]) -> ScanResult:
    """Split records into empty, fungible, NFT and skipped groups."""
    result = ScanResult(owner=owner)
    for record in records:
        kind = record.kind
        if kind == AccountKind.EMPTY:
            result.empty.append(record)
        elif kind == AccountKind.NFT:
            result.nfts.append(record)
        elif kind == AccountKind.COMPRESSED_SUSPECT:
            result.skipped.append(record)
        else:
            result.fungible.append(record)
    return result


class AccountScanner:
    """Lists a wallet's SPL token accounts, optionally with display metadata."""

    def __init__(self, datasource: RpcDataSource, metadata: Optional[MetadataService] = None):
        self.datasource = datasource
        self.metadata = metadata

    async def scan(self, owner: str, with_metadata: bool = True) -> ScanResult:
        """
        Fetch and classify every token account owned by ``owner``.

        Args:
            owner: Wallet address
            with_metadata: Resolve names and images for fungible tokens and NFTs

        Returns:
            ScanResult partitioned by account kind

        Raises:
            ScanError: If the node could not be queried
        """
        try:
            items = await self.datasource.get_token_accounts_by_owner(owner)
        except (RpcError, httpx.HTTPError) as e:
            logger.error(f"Error fetching token accounts for {owner}: {e}")
            raise ScanError(f"Failed to fetch token accounts for {owner}") from e

        records = []
        for item in items:
            try:
                records.append(TokenAccountRecord.from_rpc(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unparseable token account {item.get('pubkey')}: {e}")

        result = partition_accounts(owner, records)
        logger.info(
            f"Scanned {owner}: {len(result.empty)} empty, {len(result.fungible)} tokens, "
            f"{len(result.nfts)} NFTs, {len(result.skipped)} skipped"
        )

        if with_metadata and self.metadata is not None:
            await self._attach_metadata(result)

        return result

    async def _attach_metadata(self, result: ScanResult) -> None:
        await asyncio.gather(
            *(self._attach_token(record) for record in result.fungible),
            *(self._attach_nft(record) for record in result.nfts),
        )

    async def _attach_token(self, record: TokenAccountRecord) -> None:
        try:
            metadata = await self.metadata.get_token_metadata(record.mint)
        except Exception as e:
            logger.warning(f"Token metadata failed for {record.mint}: {e}")
            metadata = None
        record.metadata = metadata or fallback_token_metadata(record.mint)

    async def _attach_nft(self, record: TokenAccountRecord) -> None:
        try:
            metadata = await self.metadata.get_nft_metadata(record.mint)
        except Exception as e:
            logger.warning(f"NFT metadata failed for {record.mint}: {e}")
            metadata = None
        record.metadata = metadata or fallback_nft_metadata(record.address)
