"""Fee computation and instruction assembly for cleanup transactions."""

import logging
import math
from typing import Iterable

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import burn_checked, close_account
from spl.token.models import BurnCheckedParams, CloseAccountParams

from dominion.config import Config
from dominion.datasources import RpcDataSource
from dominion.models import (
    AccountKind,
    BuiltTransaction,
    FeeQuote,
    LeaderboardAction,
    TokenAccountRecord,
)

logger = logging.getLogger(__name__)


def compute_absorb_fee(rent_exemption: int, account_count: int, fee_percentage: float) -> int:
    """Fee on the rent reclaimed by closing ``account_count`` accounts."""
    return math.floor(rent_exemption * account_count * fee_percentage / 100)


def compute_burn_fee(rent_exemption: int, fee_percentage: float) -> int:
    """Flat fee for one burn transaction, whatever the number of items."""
    return math.floor(rent_exemption * fee_percentage / 100)


def is_fee_included(fee: int, payer_balance: int, network_fee_estimate: int) -> bool:
    return fee > 0 and payer_balance >= fee + network_fee_estimate


class TransactionBuilder:
    """
    Builds the instruction lists for absorb, token burn and NFT burn.

    Every transaction closes its accounts back to the payer and ends with
    the operator fee transfer when the payer can afford it.
    """

    def __init__(self, datasource: RpcDataSource, config: Config):
        self.datasource = datasource
        self.config = config
        self.fee_wallet = Pubkey.from_string(config.fee_wallet)

    async def get_rent_exemption(self) -> int:
        return await self.datasource.get_minimum_balance_for_rent_exemption(
            self.config.token_account_size
        )

    async def quote(self, action: LeaderboardAction, count: int, payer: str) -> FeeQuote:
        """
        Work out the fee for an action over ``count`` accounts.

        Args:
            action: Cleanup action
            count: Number of accounts the transaction will process
            payer: Fee payer address, whose balance decides ``feeIncluded``
        """
        rent = await self.get_rent_exemption()
        if action == LeaderboardAction.ABSORB:
            fee = compute_absorb_fee(rent, count, self.config.fee_percentage)
        else:
            fee = compute_burn_fee(rent, self.config.fee_percentage) if count > 0 else 0
        balance = await self.datasource.get_balance(payer)
        included = is_fee_included(fee, balance, self.config.network_fee_estimate)

        logger.debug(
            f"{action.value} fee: rent={rent} count={count} pct={self.config.fee_percentage} "
            f"fee={fee} balance={balance} included={included}"
        )
        if fee > 0 and not included:
            logger.info(
                f"Skipping {action.value} fee of {fee} lamports: balance {balance} "
                f"below fee + {self.config.network_fee_estimate}"
            )

        return FeeQuote(
            rentExemptionLamports=rent,
            accountCount=count,
            feeLamports=fee,
            payerBalance=balance,
            networkFeeEstimate=self.config.network_fee_estimate,
            feeIncluded=included,
        )

    def _close_instruction(self, record: TokenAccountRecord, owner: Pubkey) -> Instruction:
        return close_account(
            CloseAccountParams(
                program_id=Pubkey.from_string(record.program_id),
                account=Pubkey.from_string(record.address),
                dest=owner,
                owner=owner,
                signers=[],
            )
        )

    def _burn_instruction(
        self, record: TokenAccountRecord, owner: Pubkey, amount: int, decimals: int
    ) -> Instruction:
        return burn_checked(
            BurnCheckedParams(
                program_id=Pubkey.from_string(record.program_id),
                mint=Pubkey.from_string(record.mint),
                account=Pubkey.from_string(record.address),
                owner=owner,
                amount=amount,
                decimals=decimals,
                signers=[],
            )
        )

    def _fee_instruction(self, owner: Pubkey, fee: int) -> Instruction:
        return transfer(
            TransferParams(from_pubkey=owner, to_pubkey=self.fee_wallet, lamports=fee)
        )

    @staticmethod
    def _split(
        accounts: Iterable[TokenAccountRecord], eligible
    ) -> tuple[list[TokenAccountRecord], list[TokenAccountRecord]]:
        selected, skipped = [], []
        for record in accounts:
            if record.frozen or not eligible(record):
                skipped.append(record)
            else:
                selected.append(record)
        return selected, skipped

    async def _finish(
        self,
        action: LeaderboardAction,
        owner: Pubkey,
        instructions: list[Instruction],
        selected: list[TokenAccountRecord],
        skipped: list[TokenAccountRecord],
    ) -> BuiltTransaction:
        fee = await self.quote(action, len(selected), str(owner))
        if selected and fee.feeIncluded:
            instructions.append(self._fee_instruction(owner, fee.feeLamports))

        if skipped:
            logger.debug(f"{action.value}: skipped {len(skipped)} ineligible accounts")
        logger.debug(
            f"{action.value}: {len(selected)} accounts, {len(instructions)} instructions"
        )
        return BuiltTransaction(
            action=action,
            instructions=instructions,
            accounts=selected,
            fee=fee,
            skipped=skipped,
        )

    async def build_absorb(
        self, owner: Pubkey, accounts: Iterable[TokenAccountRecord]
    ) -> BuiltTransaction:
        """Close every empty, non-frozen account in ``accounts``."""
        selected, skipped = self._split(accounts, lambda r: r.is_empty)
        instructions = [self._close_instruction(record, owner) for record in selected]
        return await self._finish(LeaderboardAction.ABSORB, owner, instructions, selected, skipped)

    async def build_token_burn(
        self, owner: Pubkey, accounts: Iterable[TokenAccountRecord]
    ) -> BuiltTransaction:
        """Burn the full raw balance of each fungible account, then close it."""
        selected, skipped = self._split(accounts, lambda r: r.kind == AccountKind.FUNGIBLE)
        instructions = []
        for record in selected:
            instructions.append(
                self._burn_instruction(record, owner, record.amount, record.decimals)
            )
            instructions.append(self._close_instruction(record, owner))
        return await self._finish(
            LeaderboardAction.TOKEN_BURN, owner, instructions, selected, skipped
        )

    async def build_nft_burn(
        self, owner: Pubkey, accounts: Iterable[TokenAccountRecord]
    ) -> BuiltTransaction:
        """Burn one unit of each legacy NFT, then close its account."""
        selected, skipped = self._split(accounts, lambda r: r.kind == AccountKind.NFT)
        instructions = []
        for record in selected:
            instructions.append(self._burn_instruction(record, owner, 1, 0))
            instructions.append(self._close_instruction(record, owner))
        return await self._finish(
            LeaderboardAction.NFT_BURN, owner, instructions, selected, skipped
        )
