"""Shared fixtures: an in-memory Solana node and PostgREST table behind httpx.MockTransport."""

import base64
import json
import struct
from datetime import datetime, timezone
from typing import Optional

import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from dominion.config import Config
from dominion.datasources import SolanaRpcDataSource, TOKEN_PROGRAM_ID
from dominion.stores import LocalLedgerStore, SupabaseLedgerStore
from dominion.wallet import KeypairWallet

RENT_EXEMPTION = 2039280
RPC_URL = "http://rpc.test"
SUPABASE_URL = "http://supabase.test"


def token_account_item(
    address: str,
    mint: str,
    amount: int,
    decimals: int = 0,
    frozen: bool = False,
) -> dict:
    """One ``getTokenAccountsByOwner`` entry in jsonParsed encoding."""
    ui_amount = amount / (10 ** decimals) if decimals else float(amount)
    return {
        "pubkey": address,
        "account": {
            "owner": TOKEN_PROGRAM_ID,
            "lamports": RENT_EXEMPTION,
            "executable": False,
            "rentEpoch": 0,
            "data": {
                "program": "spl-token",
                "space": 165,
                "parsed": {
                    "type": "account",
                    "info": {
                        "mint": mint,
                        "owner": "owner",
                        "state": "frozen" if frozen else "initialized",
                        "isNative": False,
                        "tokenAmount": {
                            "amount": str(amount),
                            "decimals": decimals,
                            "uiAmount": ui_amount,
                            "uiAmountString": str(ui_amount),
                        },
                    },
                },
            },
        },
    }


def encode_metadata(
    name: str,
    symbol: str,
    uri: str,
    collection: Optional[Pubkey] = None,
) -> bytes:
    """Serialize a Metaplex metadata account with the fields we read."""
    data = bytes([4]) + bytes(32) + bytes(32)
    for value in (name, symbol, uri):
        raw = value.encode("utf-8")
        data += struct.pack("<I", len(raw)) + raw
    data += struct.pack("<H", 500)  # seller fee basis points
    data += b"\x00"  # no creators
    data += b"\x01\x01"  # primary sale happened, mutable
    data += b"\x01\xff"  # edition nonce
    data += b"\x00"  # token standard
    if collection is not None:
        data += b"\x01\x01" + bytes(collection)
    else:
        data += b"\x00"
    return data


class FakeSolanaNode:
    """
    JSON-RPC node holding one wallet's token accounts.

    ``sendTransaction`` removes every token account the transaction
    references, so a rescan reflects closed accounts.
    """

    def __init__(self):
        self.token_accounts: list[dict] = []
        self.balance = 1_000_000_000
        self.rent = RENT_EXEMPTION
        self.blockhash = str(Hash.new_unique())
        self.last_valid_height = 1000
        self.block_height = 900
        self.account_info: dict[str, bytes] = {}
        self.simulation_err = None
        self.signature_status: Optional[dict] = {"confirmationStatus": "confirmed", "err": None}
        self.fail_methods: set[str] = set()
        self.http_status: dict[str, int] = {}
        self.calls: list[str] = []
        self.sent: list[Transaction] = []

    def add_account(
        self,
        amount: int,
        decimals: int = 0,
        mint: Optional[str] = None,
        frozen: bool = False,
    ) -> str:
        address = str(Pubkey.new_unique())
        mint = mint or str(Pubkey.new_unique())
        self.token_accounts.append(token_account_item(address, mint, amount, decimals, frozen))
        return address

    def addresses(self) -> set[str]:
        return {item["pubkey"] for item in self.token_accounts}

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append(method)
        if method in self.http_status:
            return httpx.Response(self.http_status[method], json={"message": "unavailable"})
        if method in self.fail_methods:
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {"code": -32000, "message": f"{method} unavailable"},
                },
            )
        result = getattr(self, f"_{method}")(body["params"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    @staticmethod
    def _context(value):
        return {"context": {"slot": 1}, "value": value}

    def _getTokenAccountsByOwner(self, params):
        return self._context(list(self.token_accounts))

    def _getMinimumBalanceForRentExemption(self, params):
        return self.rent

    def _getBalance(self, params):
        return self._context(self.balance)

    def _getLatestBlockhash(self, params):
        return self._context(
            {"blockhash": self.blockhash, "lastValidBlockHeight": self.last_valid_height}
        )

    def _getBlockHeight(self, params):
        return self.block_height

    def _getAccountInfo(self, params):
        data = self.account_info.get(params[0])
        if data is None:
            return self._context(None)
        return self._context(
            {
                "data": [base64.b64encode(data).decode("ascii"), "base64"],
                "owner": "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s",
                "lamports": 5616720,
                "executable": False,
                "rentEpoch": 0,
            }
        )

    def _simulateTransaction(self, params):
        return self._context({"err": self.simulation_err, "logs": ["Program log: test"]})

    def _sendTransaction(self, params):
        transaction = Transaction.from_bytes(base64.b64decode(params[0]))
        self.sent.append(transaction)
        keys = {str(key) for key in transaction.message.account_keys}
        self.token_accounts = [a for a in self.token_accounts if a["pubkey"] not in keys]
        return str(transaction.signatures[0])

    def _getSignatureStatuses(self, params):
        return self._context([self.signature_status])


class FakePostgrest:
    """``leaderboard_entries`` served the way PostgREST answers the store's requests."""

    def __init__(self):
        self.rows: list[dict] = []
        self.fail = False
        self.requests: list[httpx.Request] = []

    def _filter(self, params: dict) -> list[dict]:
        rows = list(self.rows)
        for key, value in params.items():
            if key in ("select", "order", "limit", "on_conflict"):
                continue
            if value.startswith("eq."):
                rows = [row for row in rows if str(row.get(key)) == value[3:]]
        return rows

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503, json={"message": "service unavailable"})

        params = dict(request.url.params)
        if request.method == "GET":
            rows = self._filter(params)
            if params.get("order") == "points.desc":
                rows.sort(key=lambda row: row.get("points", 0), reverse=True)
            if "limit" in params:
                rows = rows[:int(params["limit"])]
            return httpx.Response(200, json=rows)

        body = json.loads(request.content)
        if request.method == "POST":
            existing = next((r for r in self.rows if r["wallet"] == body["wallet"]), None)
            if existing is not None:
                if params.get("on_conflict") != "wallet":
                    return httpx.Response(409, json={"message": "duplicate key value"})
                existing.update(body)
                return httpx.Response(201, json=[existing])
            now = datetime.now(timezone.utc).isoformat()
            row = {"id": f"row-{len(self.rows) + 1}", "created_at": now, "updated_at": now, **body}
            self.rows.append(row)
            return httpx.Response(201, json=[row])

        if request.method == "PATCH":
            rows = self._filter(params)
            for row in rows:
                row.update(body)
            return httpx.Response(200, json=rows)

        return httpx.Response(405)


@pytest.fixture
def keypair() -> Keypair:
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def wallet(keypair) -> KeypairWallet:
    return KeypairWallet(keypair)


@pytest.fixture
async def connected_wallet(wallet) -> KeypairWallet:
    await wallet.connect()
    return wallet


@pytest.fixture
def node() -> FakeSolanaNode:
    return FakeSolanaNode()


@pytest.fixture
async def datasource(node):
    source = SolanaRpcDataSource(RPC_URL, transport=httpx.MockTransport(node.handler))
    yield source
    await source.close()


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(local_ledger_path=str(tmp_path / "ledger.json"))


@pytest.fixture
def local_store(tmp_path) -> LocalLedgerStore:
    return LocalLedgerStore(str(tmp_path / "ledger.json"))


@pytest.fixture
def postgrest() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture
async def hosted_store(postgrest):
    store = SupabaseLedgerStore(
        SUPABASE_URL, "anon-key", transport=httpx.MockTransport(postgrest.handler)
    )
    yield store
    await store.close()
