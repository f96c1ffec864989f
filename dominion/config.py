"""Application configuration."""

import os
from dataclasses import dataclass
from typing import Optional

# Public fallback endpoint
PUBLIC_RPC_URL = "https://api.mainnet-beta.solana.com"

DEFAULT_FEE_WALLET = "5YjWWvfD1r2YaHqtHbzBYvyjWbpLYT8ebVgyngCJXFVU"


def _get_valid_endpoint(endpoint: str) -> Optional[str]:
    """Reject endpoints built from unset keys."""
    if endpoint and "undefined" not in endpoint and "None" not in endpoint:
        return endpoint
    return None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_best_endpoint() -> str:
    """
    Pick the RPC endpoint to use.

    Order: explicit SOLANA_RPC_URL, QuickNode, Helius, Ankr, public mainnet.
    """
    explicit = os.getenv("SOLANA_RPC_URL", "").strip()
    if explicit:
        return explicit

    quicknode = os.getenv("QUICKNODE_HTTP", "").strip()
    if quicknode:
        return quicknode

    helius_key = os.getenv("HELIUS_API_KEY", "").strip()
    if helius_key:
        helius = _get_valid_endpoint(f"https://mainnet.helius-rpc.com/?api-key={helius_key}")
        if helius:
            return helius

    ankr_key = os.getenv("ANKR_API_KEY", "").strip()
    if ankr_key:
        ankr = _get_valid_endpoint(f"https://rpc.ankr.com/solana/{ankr_key}")
        if ankr:
            return ankr

    return PUBLIC_RPC_URL


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # API settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Solana node
    rpc_url: str = PUBLIC_RPC_URL
    commitment: str = "confirmed"
    confirm_timeout: float = 60.0

    # Fee policy
    fee_wallet: str = DEFAULT_FEE_WALLET
    fee_percentage: float = 2.0
    network_fee_estimate: int = 5000
    token_account_size: int = 165
    simulate_before_send: bool = True

    # Hosted leaderboard table (PostgREST); unset means local fallback only
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    local_ledger_path: str = ".dominion/ledger.json"
    leaderboard_limit: int = 50

    # Wallet used by the action endpoints and the CLI
    wallet_private_key: Optional[str] = None
    wallet_keypair_path: Optional[str] = None

    @property
    def supabase_configured(self) -> bool:
        """True when both hosted-store settings are real values."""
        if not self.supabase_url or not self.supabase_anon_key:
            return False
        return "placeholder" not in self.supabase_url and "placeholder" not in self.supabase_anon_key

    @property
    def wallet_configured(self) -> bool:
        return bool(self.wallet_private_key or self.wallet_keypair_path)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            rpc_url=get_best_endpoint(),
            commitment=os.getenv("COMMITMENT", "confirmed"),
            confirm_timeout=float(os.getenv("CONFIRM_TIMEOUT", "60")),
            fee_wallet=os.getenv("FEE_WALLET", DEFAULT_FEE_WALLET),
            fee_percentage=float(os.getenv("FEE_PERCENTAGE", "2.0")),
            network_fee_estimate=int(os.getenv("NETWORK_FEE_ESTIMATE", "5000")),
            token_account_size=int(os.getenv("TOKEN_ACCOUNT_SIZE", "165")),
            simulate_before_send=_env_bool("SIMULATE_BEFORE_SEND", True),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            local_ledger_path=os.getenv("LOCAL_LEDGER_PATH", ".dominion/ledger.json"),
            leaderboard_limit=int(os.getenv("LEADERBOARD_LIMIT", "50")),
            wallet_private_key=os.getenv("WALLET_PRIVATE_KEY") or None,
            wallet_keypair_path=os.getenv("WALLET_KEYPAIR_PATH") or None,
        )
