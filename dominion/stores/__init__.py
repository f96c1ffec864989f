from .base import LedgerStore
from .local import LocalLedgerStore
from .supabase import SupabaseLedgerStore

__all__ = [
    "LedgerStore",
    "LocalLedgerStore",
    "SupabaseLedgerStore",
]
