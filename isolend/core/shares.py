"""
Share/asset conversion with virtual offsets.

Both pools are padded with ``VIRTUAL_SHARES`` / ``VIRTUAL_ASSETS`` before
dividing, so the exchange rate is defined for an empty pool and inflating the
share price by donation costs roughly ``VIRTUAL_SHARES`` times the gain.

Rounding always favors the protocol:

| Operation | Convert         | Rounding |
|-----------|-----------------|----------|
| Supply    | assets -> shares | down    |
| Withdraw  | shares -> assets | down    |
| Borrow    | assets -> shares | up      |
| Repay     | shares -> assets | up      |
"""

from __future__ import annotations

from .math import checked_add, mul_div_down, mul_div_up


VIRTUAL_SHARES = 1_000_000
VIRTUAL_ASSETS = 1


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    return mul_div_down(
        assets,
        checked_add(total_shares, VIRTUAL_SHARES),
        checked_add(total_assets, VIRTUAL_ASSETS),
    )


def to_shares_up(assets: int, total_assets: int, total_shares: int) -> int:
    return mul_div_up(
        assets,
        checked_add(total_shares, VIRTUAL_SHARES),
        checked_add(total_assets, VIRTUAL_ASSETS),
    )


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    return mul_div_down(
        shares,
        checked_add(total_assets, VIRTUAL_ASSETS),
        checked_add(total_shares, VIRTUAL_SHARES),
    )


def to_assets_up(shares: int, total_assets: int, total_shares: int) -> int:
    return mul_div_up(
        shares,
        checked_add(total_assets, VIRTUAL_ASSETS),
        checked_add(total_shares, VIRTUAL_SHARES),
    )


def shares_for_assets(assets: int, total_assets: int, total_shares: int, round_up: bool) -> int:
    """``assets * (total_shares + VIRTUAL_SHARES) / (total_assets + VIRTUAL_ASSETS)``."""
    if round_up:
        return to_shares_up(assets, total_assets, total_shares)
    return to_shares_down(assets, total_assets, total_shares)


def assets_for_shares(shares: int, total_assets: int, total_shares: int, round_up: bool) -> int:
    """``shares * (total_assets + VIRTUAL_ASSETS) / (total_shares + VIRTUAL_SHARES)``."""
    if round_up:
        return to_assets_up(shares, total_assets, total_shares)
    return to_assets_down(shares, total_assets, total_shares)
