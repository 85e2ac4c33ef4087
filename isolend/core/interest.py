"""Lazy interest accrual for one market.

Accrual is pure: the caller supplies the current timestamp and the borrow rate
already queried from the market's rate model. Interest is added to both the
borrow and the supply totals; the protocol fee is taken by minting supply
shares into ``pending_fee_shares``.
"""

from __future__ import annotations

from dataclasses import replace

from ..state.market import LLTV_DENOM, MarketState
from .errors import ValidationError
from .irm import validate_rate
from .math import checked_add, checked_sub, linear_interest_factor, mul_div_down, w_taylor_compounded, WAD
from .shares import to_shares_down
from .types import AccrualResult


def needs_rate(market: MarketState, now: int) -> bool:
    """True when accrual at `now` would consult the rate model."""
    return now > market.last_update and market.total_borrow_assets > 0


def elapsed_since_update(market: MarketState, now: int) -> int:
    if now <= market.last_update:
        return 0
    return now - market.last_update


def interest_for(total_borrow_assets: int, rate: int, elapsed: int, compound: bool = False) -> int:
    """Interest owed on `total_borrow_assets` over `elapsed` seconds (floor)."""
    if compound:
        factor = w_taylor_compounded(rate, elapsed)
    else:
        factor = linear_interest_factor(rate, elapsed)
    return mul_div_down(total_borrow_assets, factor, WAD)


def accrue_interest(
    market: MarketState,
    now: int,
    borrow_rate: int = 0,
    compound: bool = False,
) -> AccrualResult:
    """
    Bring `market` up to `now`.

    - `now <= last_update`: returned unchanged.
    - no borrows: only `last_update` moves (the rate is ignored).
    - otherwise interest accrues at `borrow_rate` (per second, WAD-scaled).
    """
    if not isinstance(now, int) or isinstance(now, bool) or now < 0:
        raise ValidationError("InvalidInput", f"now must be a non-negative int: {now!r}")
    if now <= market.last_update:
        return AccrualResult(market=market)
    if market.total_borrow_assets == 0:
        return AccrualResult(market=replace(market, last_update=now))

    rate = validate_rate(borrow_rate)
    elapsed = now - market.last_update
    interest = interest_for(market.total_borrow_assets, rate, elapsed, compound)

    total_borrow = checked_add(market.total_borrow_assets, interest)
    total_supply = checked_add(market.total_supply_assets, interest)

    fee_shares = 0
    if market.fee > 0 and interest > 0:
        fee_assets = mul_div_down(interest, market.fee, LLTV_DENOM)
        fee_shares = to_shares_down(
            fee_assets,
            checked_sub(total_supply, fee_assets),
            market.total_supply_shares,
        )

    updated = replace(
        market,
        total_borrow_assets=total_borrow,
        total_supply_assets=total_supply,
        total_supply_shares=checked_add(market.total_supply_shares, fee_shares),
        pending_fee_shares=checked_add(market.pending_fee_shares, fee_shares),
        last_update=now,
    )
    return AccrualResult(market=updated, interest=interest, fee_shares=fee_shares)
