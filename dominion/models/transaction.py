"""Transaction assembly and action result models."""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict
from solders.instruction import Instruction

from .leaderboard import LeaderboardAction
from .token_account import ScanResult, TokenAccountRecord


class FeeQuote(BaseModel):
    """Operator fee for one transaction and whether it can be charged."""
    model_config = ConfigDict(populate_by_name=True)

    rentExemptionLamports: int
    accountCount: int
    feeLamports: int
    payerBalance: int
    networkFeeEstimate: int
    feeIncluded: bool = Field(description="False when the payer cannot cover fee + network cost")


@dataclass
class BuiltTransaction:
    """Instructions for one atomic cleanup transaction."""
    action: LeaderboardAction
    instructions: list[Instruction]
    accounts: list[TokenAccountRecord]
    fee: FeeQuote
    skipped: list[TokenAccountRecord] = field(default_factory=list)

    @property
    def fee_paid(self) -> int:
        return self.fee.feeLamports if self.fee.feeIncluded else 0


class ActionRequest(BaseModel):
    """Body of the action endpoints."""
    model_config = ConfigDict(populate_by_name=True)

    accounts: Optional[list[str]] = Field(
        default=None,
        description="Token account addresses to burn; omit to select every non-frozen candidate",
    )
    referralCode: Optional[str] = Field(
        default=None,
        description="Referrer's code, credited when this is the wallet's first action",
    )


class ActionResult(BaseModel):
    """Outcome of a confirmed cleanup action."""
    model_config = ConfigDict(populate_by_name=True)

    action: LeaderboardAction
    signature: str
    processedAccounts: list[str]
    feeLamports: int
    feePaid: bool
    pointsAwarded: int
    remaining: Optional[ScanResult] = None
