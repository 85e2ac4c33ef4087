"""Value types shared by the lending core.

`AmountSpec` is the either-assets-or-shares argument of supply, withdraw,
borrow and repay. Results are frozen dataclasses carrying the next market and
position states plus the amounts that actually moved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..state.market import MarketState
from ..state.position import Position
from .errors import ValidationError


@dataclass(frozen=True)
class Assets:
    """Drive an operation by an amount of underlying tokens."""

    amount: int


@dataclass(frozen=True)
class Shares:
    """Drive an operation by an amount of market shares."""

    amount: int


AmountSpec = Union[Assets, Shares]


def require_amount(spec: AmountSpec) -> int:
    """Return the positive amount of `spec` or raise ZeroAmount / InvalidInput."""
    if not isinstance(spec, (Assets, Shares)):
        raise ValidationError("InvalidInput", f"expected Assets or Shares, got {type(spec).__name__}")
    amount = spec.amount
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError("InvalidInput", "amount must be an int")
    if amount <= 0:
        raise ValidationError("ZeroAmount", "amount must be greater than zero")
    return amount


def amount_spec(assets: int = 0, shares: int = 0) -> AmountSpec:
    """Build an AmountSpec from the two-field (assets, shares) shape.

    Exactly one of the two must be positive.
    """
    for name, v in (("assets", assets), ("shares", shares)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise ValidationError("InvalidInput", f"{name} must be an int")
    if assets < 0 or shares < 0:
        raise ValidationError("InvalidInput", "assets and shares must be non-negative")
    if assets > 0 and shares > 0:
        raise ValidationError("InvalidInput", "cannot specify both assets and shares")
    if assets > 0:
        return Assets(assets)
    if shares > 0:
        return Shares(shares)
    raise ValidationError("ZeroAmount", "one of assets or shares must be greater than zero")


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a single-position ledger operation."""

    market: MarketState
    position: Position
    assets: int = 0
    shares: int = 0


@dataclass(frozen=True)
class LiquidationResult:
    market: MarketState
    borrower: Position
    repaid_assets: int
    repaid_shares: int
    seized_collateral: int
    bad_debt_assets: int = 0
    bad_debt_shares: int = 0


@dataclass(frozen=True)
class AccrualResult:
    market: MarketState
    interest: int = 0
    fee_shares: int = 0


@dataclass(frozen=True)
class FeeClaimResult:
    market: MarketState
    position: Position
    shares: int


@dataclass(frozen=True)
class HealthReport:
    """Solvency snapshot of one position at one price."""

    collateral: int
    borrowed_assets: int
    max_borrow: int
    health_factor_wad: Optional[int]  # None = no debt (infinite)

    @property
    def healthy(self) -> bool:
        return self.borrowed_assets == 0 or self.max_borrow >= self.borrowed_assets
