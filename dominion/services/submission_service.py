"""Blockhash, simulate, sign, send and confirm."""

import asyncio
import base64
import logging
import time
from typing import Any, Awaitable, Callable

import httpx
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.transaction import Transaction

from dominion.datasources import RpcDataSource
from dominion.errors import (
    ConfirmationTimeoutError,
    RpcError,
    SendError,
    SimulationError,
    TransactionFailedError,
    TransactionTooLargeError,
)
from dominion.wallet import WalletAdapter

logger = logging.getLogger(__name__)

# Maximum serialized transaction size accepted by the network
PACKET_DATA_SIZE = 1232
CONFIRMED_STATUSES = ("confirmed", "finalized")
POLL_INTERVAL = 1.0


def _encode(transaction: Transaction) -> str:
    return base64.b64encode(bytes(transaction)).decode("ascii")


class SubmissionPipeline:
    """
    Turns an instruction list into a confirmed transaction.

    Nothing is retried here: a failed or expired transaction surfaces as a
    ``TransactionError`` and the caller decides what to do.
    """

    def __init__(
        self,
        datasource: RpcDataSource,
        confirm_timeout: float = 60.0,
        poll_interval: float = POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.datasource = datasource
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep

    async def build(
        self, instructions: list[Instruction], wallet: WalletAdapter
    ) -> tuple[Transaction, int]:
        """
        Compile an unsigned legacy transaction paid by the wallet.

        Returns:
            ``(transaction, last_valid_block_height)``

        Raises:
            TransactionTooLargeError: If it would not fit in one packet
        """
        blockhash, last_valid_height = await self.datasource.get_latest_blockhash()
        message = Message.new_with_blockhash(
            instructions, wallet.public_key, Hash.from_string(blockhash)
        )
        transaction = Transaction.new_unsigned(message)

        size = len(bytes(transaction))
        logger.debug(f"Compiled {len(instructions)} instructions into {size} bytes")
        if size > PACKET_DATA_SIZE:
            raise TransactionTooLargeError(
                f"Transaction is {size} bytes, limit is {PACKET_DATA_SIZE}"
            )
        return transaction, last_valid_height

    async def simulate(self, transaction: Transaction) -> None:
        """Raise SimulationError if the node reports the transaction would fail."""
        value = await self.datasource.simulate_transaction(_encode(transaction))
        if value.get("err") is not None:
            logs = value.get("logs") or []
            logger.error(f"Simulation failed: {value['err']} logs={logs[-5:]}")
            raise SimulationError(f"Simulation failed: {value['err']}")

    async def confirm(self, signature: str, last_valid_height: int) -> None:
        """
        Poll until the signature reaches confirmed or finalized.

        Raises:
            TransactionFailedError: If the transaction landed with an error
            ConfirmationTimeoutError: If the blockhash expired or the timeout passed
        """
        deadline = time.monotonic() + self.confirm_timeout
        while True:
            status = await self.datasource.get_signature_status(signature)
            if status is not None:
                if status.get("err") is not None:
                    raise TransactionFailedError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in CONFIRMED_STATUSES:
                    return

            if await self.datasource.get_block_height() > last_valid_height:
                raise ConfirmationTimeoutError(
                    f"Blockhash expired before {signature} was confirmed"
                )
            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(
                    f"{signature} not confirmed within {self.confirm_timeout}s"
                )
            await self._sleep(self.poll_interval)

    async def submit(
        self,
        instructions: list[Instruction],
        wallet: WalletAdapter,
        simulate: bool = True,
    ) -> str:
        """
        Build, optionally simulate, sign, send and confirm.

        Returns:
            The confirmed transaction signature

        Raises:
            SendError: If a node call fails at any step
        """
        try:
            transaction, last_valid_height = await self.build(instructions, wallet)

            if simulate:
                await self.simulate(transaction)

            signed = await wallet.sign_transaction(transaction)
            signature = await self.datasource.send_transaction(_encode(signed))
            logger.info(f"Sent transaction {signature}")

            await self.confirm(signature, last_valid_height)
        except (RpcError, httpx.HTTPError) as e:
            logger.error(f"Node call failed during submission: {e}")
            raise SendError(str(e)) from e

        logger.info(f"Confirmed transaction {signature}")
        return signature
