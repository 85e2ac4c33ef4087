"""Solvency evaluation and liquidation sizing.

A position is healthy iff it has no debt or

    collateral * price / PRICE_SCALE * lltv / BPS >= to_assets_up(borrow_shares)

Debt is rounded up and borrowing power rounded down, so a position is never
reported healthier than it is.
"""

from __future__ import annotations

from typing import Optional

from ..state.market import MarketState
from ..state.position import Position
from .errors import SolvencyError
from .math import BPS, PRICE_SCALE, WAD, mul_div_down
from .shares import to_assets_up
from .types import HealthReport


MAX_LIF_BPS = 11_500
LIF_CURSOR_BPS = 3_000


def borrowed_assets(position: Position, market: MarketState) -> int:
    """Debt of `position` in loan-token units, rounded up."""
    if position.borrow_shares == 0:
        return 0
    return to_assets_up(position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares)


def max_borrow(collateral: int, price: int, lltv: int) -> int:
    """Borrowing power of `collateral` at `price` (floor)."""
    value = mul_div_down(collateral, price, PRICE_SCALE)
    return mul_div_down(value, lltv, BPS)


def health_factor(max_borrow_assets: int, borrowed: int) -> Optional[int]:
    """WAD-scaled health factor; None means no debt (infinite)."""
    if borrowed == 0:
        return None
    return mul_div_down(max_borrow_assets, WAD, borrowed)


def health_report(position: Position, market: MarketState, price: int) -> HealthReport:
    borrowed = borrowed_assets(position, market)
    limit = max_borrow(position.collateral, price, market.lltv)
    return HealthReport(
        collateral=position.collateral,
        borrowed_assets=borrowed,
        max_borrow=limit,
        health_factor_wad=health_factor(limit, borrowed),
    )


def is_healthy(position: Position, market: MarketState, price: int) -> bool:
    if not position.has_debt():
        return True
    return max_borrow(position.collateral, price, market.lltv) >= borrowed_assets(position, market)


def is_liquidatable(position: Position, market: MarketState, price: int) -> bool:
    return not is_healthy(position, market, price)


def require_healthy(position: Position, market: MarketState, price: int) -> None:
    if not is_healthy(position, market, price):
        raise SolvencyError(
            "PositionUnhealthy",
            f"position {position.owner} in market {market.market_id} would be undercollateralized",
        )


def liquidation_incentive_bps(lltv: int) -> int:
    """
    Liquidation incentive factor in bps (>= 10000).

        LIF = min(MAX_LIF, BPS / (1 - CURSOR * (1 - lltv)))

    Lower LLTV markets pay a larger incentive, capped at 115%.
    """
    denominator = BPS - (LIF_CURSOR_BPS * (BPS - lltv)) // BPS
    return min(MAX_LIF_BPS, (BPS * BPS) // denominator)


def collateral_to_seize(repaid_assets: int, price: int, lltv: int) -> int:
    """Collateral owed to a liquidator for repaying `repaid_assets` of debt."""
    with_incentive = mul_div_down(repaid_assets, liquidation_incentive_bps(lltv), BPS)
    return mul_div_down(with_incentive, PRICE_SCALE, price)
