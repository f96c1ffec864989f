"""Wallet adapters: connection state, public key and transaction signing."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from dominion.config import Config
from dominion.errors import WalletNotConnectedError

logger = logging.getLogger(__name__)


class WalletAdapter(ABC):
    """
    Minimal wallet interface used by the cleanup flows.

    Mirrors what a browser wallet exposes: connect, disconnect, the
    connected public key, and signing.
    """

    @property
    @abstractmethod
    def connected(self) -> bool:
        pass

    @property
    @abstractmethod
    def public_key(self) -> Pubkey:
        """Connected address. Raises WalletNotConnectedError if disconnected."""
        pass

    @abstractmethod
    async def connect(self) -> Pubkey:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """Sign a transaction whose message already carries a recent blockhash."""
        pass


class KeypairWallet(WalletAdapter):
    """Wallet backed by a local ed25519 keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self._connected = False

    @classmethod
    def from_base58(cls, secret: str) -> "KeypairWallet":
        return cls(Keypair.from_base58_string(secret.strip()))

    @classmethod
    def from_file(cls, path: str) -> "KeypairWallet":
        """Load a keypair file in the Solana CLI JSON array format."""
        raw = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        return cls(Keypair.from_bytes(bytes(raw)))

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def public_key(self) -> Pubkey:
        if not self._connected:
            raise WalletNotConnectedError("Wallet is not connected")
        return self._keypair.pubkey()

    async def connect(self) -> Pubkey:
        self._connected = True
        logger.info(f"Wallet connected: {self._keypair.pubkey()}")
        return self._keypair.pubkey()

    async def disconnect(self) -> None:
        if self._connected:
            logger.info(f"Wallet disconnected: {self._keypair.pubkey()}")
        self._connected = False

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        if not self._connected:
            raise WalletNotConnectedError("Wallet is not connected")
        transaction.sign([self._keypair], transaction.message.recent_blockhash)
        return transaction


def load_wallet(config: Config) -> Optional[KeypairWallet]:
    """Build the configured wallet, or None if no key is configured."""
    if config.wallet_private_key:
        return KeypairWallet.from_base58(config.wallet_private_key)
    if config.wallet_keypair_path:
        return KeypairWallet.from_file(config.wallet_keypair_path)
    return None
