"""Token account models produced by a wallet scan."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

# Mint addresses longer than this are treated as compressed NFTs
MAX_MINT_ADDRESS_LENGTH = 44


class AccountKind(str, Enum):
    """Classification of a token account."""
    EMPTY = "empty"
    FUNGIBLE = "fungible"
    NFT = "nft"
    COMPRESSED_SUSPECT = "compressed_suspect"


class TokenMetadata(BaseModel):
    """Display metadata for a mint."""
    name: Optional[str] = None
    symbol: Optional[str] = None
    image: Optional[str] = None
    collection: Optional[str] = None


class TokenAccountRecord(BaseModel):
    """
    A single SPL token account owned by the scanned wallet.

    Built from a ``jsonParsed`` RPC response. ``amount`` is the raw integer
    balance in base units; ``ui_amount`` is only for display.
    """
    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(description="Token account address")
    mint: str
    amount: int = Field(description="Raw balance in base units")
    decimals: int
    ui_amount: float = Field(default=0.0, alias="uiAmount")
    frozen: bool = False
    program_id: str = Field(alias="programId")
    metadata: Optional[TokenMetadata] = None

    @classmethod
    def from_rpc(cls, item: dict) -> "TokenAccountRecord":
        """Build a record from one ``getTokenAccountsByOwner`` value entry."""
        account = item["account"]
        info = account["data"]["parsed"]["info"]
        token_amount = info["tokenAmount"]
        return cls(
            address=item["pubkey"],
            mint=info["mint"],
            amount=int(token_amount.get("amount") or 0),
            decimals=int(token_amount.get("decimals") or 0),
            ui_amount=float(token_amount.get("uiAmount") or 0.0),
            frozen=info.get("state") == "frozen",
            program_id=account.get("owner", ""),
        )

    @property
    def is_empty(self) -> bool:
        return self.amount == 0

    @property
    def is_nft_like(self) -> bool:
        """Balance of exactly one with zero decimals."""
        return self.amount == 1 and self.decimals == 0

    @property
    def kind(self) -> AccountKind:
        if self.is_empty:
            return AccountKind.EMPTY
        if self.is_nft_like:
            if len(self.mint) > MAX_MINT_ADDRESS_LENGTH:
                return AccountKind.COMPRESSED_SUSPECT
            return AccountKind.NFT
        return AccountKind.FUNGIBLE


class ScanResult(BaseModel):
    """Token accounts of one owner, partitioned by kind."""
    owner: str
    empty: list[TokenAccountRecord] = Field(default_factory=list)
    fungible: list[TokenAccountRecord] = Field(default_factory=list)
    nfts: list[TokenAccountRecord] = Field(default_factory=list)
    skipped: list[TokenAccountRecord] = Field(
        default_factory=list,
        description="Suspected compressed NFTs, never offered for burning",
    )

    @property
    def total(self) -> int:
        return len(self.empty) + len(self.fungible) + len(self.nfts) + len(self.skipped)

    def addresses(self) -> set[str]:
        """All token account addresses in the scan."""
        return {
            record.address
            for group in (self.empty, self.fungible, self.nfts, self.skipped)
            for record in group
        }
