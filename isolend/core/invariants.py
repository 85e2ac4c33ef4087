"""Invariant checkers for market and position records.

Each function returns True when the invariant holds; ``check_all()`` returns
the list of violated invariant IDs (empty = all pass). The engine runs them on
every record it is about to write.
"""

from __future__ import annotations

from typing import Callable

from ..state.market import LLTV_DENOM, MAX_FEE_BPS, MarketState
from ..state.position import Position
from .math import U128_MAX


_AMOUNTS = (
    "total_supply_assets",
    "total_supply_shares",
    "total_borrow_assets",
    "total_borrow_shares",
    "pending_fee_shares",
    "flash_loan_required",
    "flash_loan_fee",
)


def inv_borrow_le_supply(m: MarketState) -> bool:
    return m.total_borrow_assets <= m.total_supply_assets


def inv_amounts_u128(m: MarketState) -> bool:
    return all(0 <= getattr(m, name) <= U128_MAX for name in _AMOUNTS)


def inv_fee_bounded(m: MarketState) -> bool:
    return 0 <= m.fee <= MAX_FEE_BPS


def inv_lltv_bounded(m: MarketState) -> bool:
    return 0 < m.lltv <= LLTV_DENOM


def inv_pending_fees_le_shares(m: MarketState) -> bool:
    return m.pending_fee_shares <= m.total_supply_shares


def inv_flash_loan_cleared_when_unlocked(m: MarketState) -> bool:
    if m.flash_loan_locked:
        return True
    return m.flash_loan_required == 0 and m.flash_loan_fee == 0


_MARKET_CHECKS: list[tuple[str, Callable[[MarketState], bool]]] = [
    ("borrow_le_supply", inv_borrow_le_supply),
    ("amounts_u128", inv_amounts_u128),
    ("fee_bounded", inv_fee_bounded),
    ("lltv_bounded", inv_lltv_bounded),
    ("pending_fees_le_shares", inv_pending_fees_le_shares),
    ("flash_loan_cleared_when_unlocked", inv_flash_loan_cleared_when_unlocked),
]


def inv_position_within_market(p: Position, m: MarketState) -> bool:
    return (
        p.market_id == m.market_id
        and p.supply_shares <= m.total_supply_shares
        and p.borrow_shares <= m.total_borrow_shares
    )


def check_all(market: MarketState) -> list[str]:
    """Return list of violated market invariant IDs (empty = all pass)."""
    return [name for name, fn in _MARKET_CHECKS if not fn(market)]


def check_position(position: Position, market: MarketState) -> list[str]:
    violations = []
    if not inv_position_within_market(position, market):
        violations.append("position_within_market")
    if not all(0 <= v <= U128_MAX for v in (position.supply_shares, position.borrow_shares, position.collateral)):
        violations.append("position_amounts_u128")
    return violations
