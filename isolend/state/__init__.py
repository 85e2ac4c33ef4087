"""
Lending state records and storage
"""

from .authorization import NEVER_EXPIRES, Authorization
from .balances import BalanceTable, TokenLedger, vault_owner
from .market import MarketState, compute_market_id
from .position import Position, empty_position
from .protocol import ProtocolState
from .store import AccountStore, MemoryAccountStore, derive_key

__all__ = [
    "NEVER_EXPIRES",
    "Authorization",
    "BalanceTable",
    "TokenLedger",
    "vault_owner",
    "MarketState",
    "compute_market_id",
    "Position",
    "empty_position",
    "ProtocolState",
    "AccountStore",
    "MemoryAccountStore",
    "derive_key",
]
