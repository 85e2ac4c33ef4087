"""
isolend: accounting core of an isolated-market lending protocol.

Public API:
- `LendingEngine(store, tokens, oracle, rate_models, clock, config)`
- `Assets(n)` / `Shares(n)` amount arguments
- `execute(engine, commands) -> BatchResult`
"""

from .config import EngineConfig, configure, load_config
from .logging_setup import configure_logging
from .core.errors import LendingError
from .core.irm import FixedRateModel, LinearRateModel
from .core.oracle import StaticPriceOracle
from .core.types import Assets, Shares
from .integration.commands import BatchResult, Command, execute, execute_or_raise
from .integration.engine import LendingEngine
from .state.balances import BalanceTable
from .state.store import MemoryAccountStore

__all__ = [
    "EngineConfig",
    "load_config",
    "configure",
    "configure_logging",
    "LendingError",
    "FixedRateModel",
    "LinearRateModel",
    "StaticPriceOracle",
    "Assets",
    "Shares",
    "BatchResult",
    "Command",
    "execute",
    "execute_or_raise",
    "LendingEngine",
    "BalanceTable",
    "MemoryAccountStore",
]
