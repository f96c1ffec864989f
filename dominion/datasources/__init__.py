from .base import RpcDataSource, TOKEN_PROGRAM_ID
from .solana_rpc import SolanaRpcDataSource

__all__ = [
    "RpcDataSource",
    "SolanaRpcDataSource",
    "TOKEN_PROGRAM_ID",
]
