"""Solana JSON-RPC data source implementation."""

import logging
import asyncio
from typing import Any, Optional

import httpx

from dominion.errors import RpcError
from .base import RpcDataSource, TOKEN_PROGRAM_ID

logger = logging.getLogger(__name__)

# API constants
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
REQUEST_TIMEOUT = 30.0
MAX_RETRIES = 5
RETRY_DELAY = 2.0
RATE_LIMIT_DELAY = 0.5


class SolanaRpcDataSource(RpcDataSource):
    """
    Data source implementation over a Solana node's HTTP JSON-RPC endpoint.

    Timeouts and HTTP 429 responses are retried up to ``MAX_RETRIES``
    times; JSON-RPC error objects are raised as ``RpcError`` without retry.
    """

    def __init__(
        self,
        rpc_url: str = MAINNET_RPC_URL,
        commitment: str = "confirmed",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the RPC data source.

        Args:
            rpc_url: Node HTTP endpoint
            commitment: Commitment level used for reads and preflight
            transport: Optional httpx transport (used by tests)
        """
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    async def _make_request(
        self, method: str, params: list, retry_count: int = 0, retry: bool = True
    ) -> Any:
        """
        Make a JSON-RPC call with timeout handling and retries.

        Args:
            method: RPC method name
            params: Positional params
            retry_count: Current retry attempt
            retry: Whether timeouts and 429s are retried

        Returns:
            The ``result`` member of the response
        """
        client = await self._get_client()
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            response = await client.post(self.rpc_url, json=payload, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            data = response.json()

        except (httpx.TimeoutException, httpx.ConnectError) as e:
            if retry and retry_count < MAX_RETRIES:
                logger.warning(
                    f"{method} timed out (attempt {retry_count + 1}/{MAX_RETRIES}). "
                    f"Retrying in {RETRY_DELAY}s..."
                )
                await asyncio.sleep(RETRY_DELAY)
                return await self._make_request(method, params, retry_count + 1)
            logger.error(f"{method} failed after {retry_count} retries: {e}")
            raise

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429 and retry and retry_count < MAX_RETRIES:
                logger.warning(
                    f"Rate limited (429) on {method} (attempt {retry_count + 1}/{MAX_RETRIES}). "
                    f"Retrying in {RATE_LIMIT_DELAY}s..."
                )
                await asyncio.sleep(RATE_LIMIT_DELAY)
                return await self._make_request(method, params, retry_count + 1)

            logger.error(f"HTTP error {e.response.status_code} for {method}: {e}")
            raise

        if data.get("error"):
            raise RpcError(method, data["error"])
        return data.get("result")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def get_token_accounts_by_owner(
        self,
        owner: str,
        program_id: str = TOKEN_PROGRAM_ID,
    ) -> list[dict]:
        result = await self._make_request(
            "getTokenAccountsByOwner",
            [
                owner,
                {"programId": program_id},
                {"encoding": "jsonParsed", "commitment": self.commitment},
            ],
        )
        return (result or {}).get("value") or []

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        result = await self._make_request("getMinimumBalanceForRentExemption", [size])
        return int(result)

    async def get_balance(self, address: str) -> int:
        result = await self._make_request(
            "getBalance", [address, {"commitment": self.commitment}]
        )
        return int(result["value"])

    async def get_latest_blockhash(self) -> tuple[str, int]:
        result = await self._make_request(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        value = result["value"]
        return value["blockhash"], int(value["lastValidBlockHeight"])

    async def get_block_height(self) -> int:
        result = await self._make_request(
            "getBlockHeight", [{"commitment": self.commitment}]
        )
        return int(result)

    async def get_account_info(self, address: str) -> Optional[dict]:
        result = await self._make_request(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        return (result or {}).get("value")

    async def simulate_transaction(self, transaction_b64: str) -> dict:
        result = await self._make_request(
            "simulateTransaction",
            [
                transaction_b64,
                {
                    "encoding": "base64",
                    "sigVerify": False,
                    "commitment": self.commitment,
                },
            ],
        )
        return (result or {}).get("value") or {}

    async def send_transaction(self, transaction_b64: str) -> str:
        # Submitted at most once
        result = await self._make_request(
            "sendTransaction",
            [
                transaction_b64,
                {
                    "encoding": "base64",
                    "skipPreflight": False,
                    "preflightCommitment": self.commitment,
                },
            ],
            retry=False,
        )
        return str(result)

    async def get_signature_status(self, signature: str) -> Optional[dict]:
        result = await self._make_request(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        statuses = (result or {}).get("value") or [None]
        return statuses[0]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
