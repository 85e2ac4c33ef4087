"""
Lending core: pure, integer-only transitions over frozen records.

- deterministic share math with virtual offsets,
- lazy interest accrual,
- health evaluation and liquidation sizing,
- fail-closed guards and invariant checks.
"""

from .errors import (
    AuthorizationError,
    FlashLoanError,
    InvariantError,
    LendingError,
    LiquidityError,
    LockError,
    MathOverflowError,
    OracleError,
    PausedError,
    RateModelError,
    SolvencyError,
    ValidationError,
)
from .health import health_report, is_healthy, is_liquidatable, liquidation_incentive_bps
from .interest import accrue_interest
from .invariants import check_all
from .irm import FixedRateModel, LinearRateModel, RateModel
from .oracle import OraclePrice, PriceOracle, StaticPriceOracle
from .shares import VIRTUAL_ASSETS, VIRTUAL_SHARES, to_assets_down, to_assets_up, to_shares_down, to_shares_up
from .types import AccrualResult, Assets, HealthReport, LedgerResult, LiquidationResult, Shares, amount_spec

__all__ = [
    "AuthorizationError",
    "FlashLoanError",
    "InvariantError",
    "LendingError",
    "LiquidityError",
    "LockError",
    "MathOverflowError",
    "OracleError",
    "PausedError",
    "RateModelError",
    "SolvencyError",
    "ValidationError",
    "health_report",
    "is_healthy",
    "is_liquidatable",
    "liquidation_incentive_bps",
    "accrue_interest",
    "check_all",
    "FixedRateModel",
    "LinearRateModel",
    "RateModel",
    "OraclePrice",
    "PriceOracle",
    "StaticPriceOracle",
    "VIRTUAL_ASSETS",
    "VIRTUAL_SHARES",
    "to_assets_down",
    "to_assets_up",
    "to_shares_down",
    "to_shares_up",
    "AccrualResult",
    "Assets",
    "HealthReport",
    "LedgerResult",
    "LiquidationResult",
    "Shares",
    "amount_spec",
]
