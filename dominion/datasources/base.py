"""Abstract base class for node RPC data sources."""

from abc import ABC, abstractmethod
from typing import Optional

# SPL Token program
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


class RpcDataSource(ABC):
    """
    Abstract interface over the Solana node RPC calls the service needs.

    This abstraction allows swapping between node providers (QuickNode,
    Helius, Ankr, public mainnet) or test fakes without touching the
    services.
    """

    @abstractmethod
    async def get_token_accounts_by_owner(
        self,
        owner: str,
        program_id: str = TOKEN_PROGRAM_ID,
    ) -> list[dict]:
        """
        Retrieve every token account owned by an address.

        Args:
            owner: Wallet address (base58)
            program_id: Token program the accounts belong to

        Returns:
            List of ``{"pubkey", "account"}`` dicts in ``jsonParsed`` encoding
        """
        pass

    @abstractmethod
    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        """
        Get the rent-exempt minimum for an account of ``size`` bytes.

        Returns:
            Lamports
        """
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Get the native balance of an address in lamports."""
        pass

    @abstractmethod
    async def get_latest_blockhash(self) -> tuple[str, int]:
        """
        Get the latest blockhash.

        Returns:
            ``(blockhash, last_valid_block_height)``
        """
        pass

    @abstractmethod
    async def get_block_height(self) -> int:
        """Get the current block height."""
        pass

    @abstractmethod
    async def get_account_info(self, address: str) -> Optional[dict]:
        """
        Get raw account info in base64 encoding.

        Returns:
            The ``value`` object, or None if the account does not exist
        """
        pass

    @abstractmethod
    async def simulate_transaction(self, transaction_b64: str) -> dict:
        """
        Simulate a serialized transaction without verifying signatures.

        Returns:
            The ``value`` object with ``err`` and ``logs``
        """
        pass

    @abstractmethod
    async def send_transaction(self, transaction_b64: str) -> str:
        """
        Submit a signed, serialized transaction.

        Returns:
            Transaction signature
        """
        pass

    @abstractmethod
    async def get_signature_status(self, signature: str) -> Optional[dict]:
        """
        Get the status of one signature.

        Returns:
            Status dict with ``confirmationStatus`` and ``err``, or None if
            the node has not seen it yet
        """
        pass

    async def close(self) -> None:
        """
        Clean up resources (e.g., close HTTP sessions).

        Override this if the data source holds resources that need cleanup.
        """
        pass
