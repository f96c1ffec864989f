"""Token and NFT display metadata lookups."""

import asyncio
import base64
import logging
import struct
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from solders.pubkey import Pubkey

from dominion.datasources import RpcDataSource
from dominion.models import TokenMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
TOKEN_LIST_URL = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/src/tokens/solana.tokenlist.json"
)
PLACEHOLDER_IMAGE = "/placeholder.png"
REQUEST_TIMEOUT = 10.0

_LOGO_BASE = "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet"

COMMON_TOKENS: dict[str, TokenMetadata] = {
    "So11111111111111111111111111111111111111112": TokenMetadata(
        name="Solana",
        symbol="SOL",
        image=f"{_LOGO_BASE}/So11111111111111111111111111111111111111112/logo.png",
    ),
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": TokenMetadata(
        name="USD Coin",
        symbol="USDC",
        image=f"{_LOGO_BASE}/EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v/logo.png",
    ),
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": TokenMetadata(
        name="Tether USD",
        symbol="USDT",
        image=f"{_LOGO_BASE}/Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB/logo.png",
    ),
}


def _is_rate_limited(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code == 429
    return "429" in str(error)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or ``max_retries`` retries are spent.

    The delay doubles after each failure; a rate-limit (429) failure waits
    twice the current delay before the next attempt. The last error is
    re-raised.
    """
    retries = 0
    delay = initial_delay
    while True:
        try:
            return await fn()
        except Exception as e:
            if retries >= max_retries:
                raise
            wait = delay * 2 if _is_rate_limited(e) else delay
            logger.debug(f"Retry {retries + 1}/{max_retries} in {wait}s after: {e}")
            await sleep(wait)
            delay *= 2
            retries += 1


def normalize_image_url(url: Optional[str]) -> str:
    """Map ipfs:// and ar:// URIs to HTTP gateways."""
    if not url:
        return PLACEHOLDER_IMAGE
    if url.startswith("ipfs://"):
        return f"https://ipfs.io/ipfs/{url[len('ipfs://'):]}"
    if url.startswith("ar://"):
        return f"https://arweave.net/{url[len('ar://'):]}"
    return url


def find_metadata_pda(mint: str) -> Pubkey:
    """Derive the Metaplex metadata account for a mint."""
    seeds = [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(Pubkey.from_string(mint))]
    pda, _ = Pubkey.find_program_address(seeds, METADATA_PROGRAM_ID)
    return pda


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    (length,) = struct.unpack_from("<I", data, offset)
    offset += 4
    raw = data[offset:offset + length]
    return raw.decode("utf-8", errors="ignore").rstrip("\x00").strip(), offset + length


def _skip_option_u8(data: bytes, offset: int) -> int:
    return offset + (2 if data[offset] else 1)


def decode_metadata_account(data: bytes) -> dict[str, Optional[str]]:
    """
    Decode the fields we display from a Metaplex metadata account.

    Layout: key(1) update_authority(32) mint(32) name symbol uri
    seller_fee(2) creators? primary_sale(1) is_mutable(1) edition_nonce?
    token_standard? collection?. Accounts written by older program versions
    stop early, so everything after ``uri`` is optional.
    """
    offset = 1 + 32 + 32
    name, offset = _read_string(data, offset)
    symbol, offset = _read_string(data, offset)
    uri, offset = _read_string(data, offset)
    decoded: dict[str, Optional[str]] = {
        "name": name or None,
        "symbol": symbol or None,
        "uri": uri or None,
        "collection": None,
    }

    try:
        offset += 2
        if data[offset]:
            (count,) = struct.unpack_from("<I", data, offset + 1)
            offset += 1 + 4 + count * 34
        else:
            offset += 1
        offset += 2
        offset = _skip_option_u8(data, offset)
        offset = _skip_option_u8(data, offset)
        if data[offset]:
            key = data[offset + 2:offset + 34]
            if len(key) == 32:
                decoded["collection"] = str(Pubkey.from_bytes(key))
    except (IndexError, struct.error):
        pass

    return decoded


class MetadataService:
    """
    Resolves names, symbols and images for mints.

    Lookup order: built-in common tokens, on-chain Metaplex metadata with
    its off-chain JSON, then the Solana token list. On-chain lookups go
    through ``retry_with_backoff``; the token list is downloaded once and
    cached.
    """

    def __init__(
        self,
        datasource: RpcDataSource,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        initial_delay: float = 1.0,
    ):
        self.datasource = datasource
        self._http = http_client
        self._owns_http = http_client is None
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._token_list: Optional[dict[str, dict]] = None
        self._token_list_lock = asyncio.Lock()

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=REQUEST_TIMEOUT, follow_redirects=True)
        return self._http

    async def _fetch_json(self, url: str) -> Optional[dict]:
        client = await self._get_http()
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Failed to fetch {url}: {e}")
            return None

    async def _load_token_list(self) -> dict[str, dict]:
        async with self._token_list_lock:
            if self._token_list is None:
                data = await self._fetch_json(TOKEN_LIST_URL) or {}
                self._token_list = {
                    token["address"]: token
                    for token in data.get("tokens", [])
                    if "address" in token
                }
                logger.debug(f"Loaded {len(self._token_list)} tokens from token list")
        return self._token_list

    async def from_token_list(self, mint: str) -> Optional[TokenMetadata]:
        token = (await self._load_token_list()).get(mint)
        if not token:
            return None
        return TokenMetadata(
            name=token.get("name"),
            symbol=token.get("symbol"),
            image=token.get("logoURI"),
        )

    async def _fetch_onchain_once(self, mint: str) -> Optional[dict[str, Optional[str]]]:
        account = await self.datasource.get_account_info(str(find_metadata_pda(mint)))
        if not account or not account.get("data"):
            return None
        encoded = account["data"][0] if isinstance(account["data"], list) else account["data"]
        return decode_metadata_account(base64.b64decode(encoded))

    async def fetch_onchain(self, mint: str) -> Optional[TokenMetadata]:
        """
        Fetch on-chain metadata plus the image from its off-chain JSON.

        Raises the last RPC error if every retry fails.
        """
        decoded = await retry_with_backoff(
            lambda: self._fetch_onchain_once(mint),
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
        )
        if not decoded or not decoded.get("name"):
            return None

        image = None
        if decoded.get("uri"):
            document = await self._fetch_json(decoded["uri"])
            if document:
                image = document.get("image") or document.get("logoURI")

        return TokenMetadata(
            name=decoded["name"],
            symbol=decoded.get("symbol"),
            image=image,
            collection=decoded.get("collection"),
        )

    async def get_token_metadata(self, mint: str) -> Optional[TokenMetadata]:
        """Metadata for a fungible mint, or None if no source knows it."""
        if mint in COMMON_TOKENS:
            return COMMON_TOKENS[mint]

        try:
            metadata = await self.fetch_onchain(mint)
            if metadata:
                return metadata
        except Exception as e:
            logger.debug(f"On-chain metadata lookup failed for {mint}: {e}")

        return await self.from_token_list(mint)

    async def get_nft_metadata(self, mint: str) -> Optional[TokenMetadata]:
        """
        Metadata for an NFT mint with its collection name resolved.

        Falls back to the token list when the on-chain lookup fails.
        """
        try:
            metadata = await self.fetch_onchain(mint)
        except Exception as e:
            logger.debug(f"NFT metadata lookup failed for {mint}: {e}")
            metadata = None

        if metadata is None:
            fallback = await self.from_token_list(mint)
            if fallback:
                fallback.image = normalize_image_url(fallback.image)
                fallback.collection = "Unknown Collection"
            return fallback

        collection_name = "No Collection"
        if metadata.collection:
            try:
                collection = await self.fetch_onchain(metadata.collection)
                collection_name = (collection.name if collection else None) or "Unknown Collection"
            except Exception as e:
                logger.debug(f"Collection lookup failed for {metadata.collection}: {e}")
                collection_name = "Unknown Collection"

        metadata.collection = collection_name
        metadata.image = normalize_image_url(metadata.image)
        return metadata

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None
