"""Market ledger transitions (pure).

Each function takes the current frozen ``MarketState`` / ``Position`` records
(already accrued to "now" by the caller) and returns the next ones, or raises a
typed ``LendingError``. Nothing here moves tokens; the imperative shell turns
the returned amounts into transfers.

Structure of every transition follows the same shape: guard, compute amounts
with protocol-favoring rounding, apply, then (for debt-increasing moves) check
health against the post-state.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Tuple

from ..state.market import MarketState
from ..state.position import Position
from .errors import FlashLoanError, LiquidityError, LockError, PausedError, SolvencyError, ValidationError
from .health import collateral_to_seize, is_liquidatable, require_healthy
from .math import BPS, checked_add, checked_sub, mul_div_up, zero_floor_sub
from .shares import to_assets_down, to_assets_up, to_shares_down, to_shares_up
from .types import AmountSpec, Assets, FeeClaimResult, LedgerResult, LiquidationResult, require_amount


FLASH_LOAN_FEE_BPS = 5


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def require_unlocked(market: MarketState) -> None:
    if market.flash_loan_locked:
        raise LockError("MarketLocked", f"market {market.market_id} is locked by a flash loan")


def require_not_paused(protocol_paused: bool, market: MarketState) -> None:
    if protocol_paused:
        raise PausedError("ProtocolPaused", "protocol is paused")
    if market.paused:
        raise PausedError("MarketPaused", f"market {market.market_id} is paused")


def _require_position(market: MarketState, position: Position) -> None:
    if position.market_id != market.market_id:
        raise ValidationError(
            "InvalidInput",
            f"position belongs to market {position.market_id}, not {market.market_id}",
        )


def _require_positive(name: str, amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError("InvalidInput", f"{name} must be an int")
    if amount <= 0:
        raise ValidationError("ZeroAmount", f"{name} must be greater than zero")
    return amount


def _require_bound(name: str, bound: int) -> int:
    if not isinstance(bound, int) or isinstance(bound, bool) or bound < 0:
        raise ValidationError("InvalidInput", f"{name} must be a non-negative int")
    return bound


# ---------------------------------------------------------------------------
# Supply side
# ---------------------------------------------------------------------------


def supply(market: MarketState, position: Position, amount: AmountSpec, min_shares: int = 0) -> LedgerResult:
    """Deposit loan tokens for `position`; shares round down, assets charged round up."""
    _require_position(market, position)
    n = require_amount(amount)
    _require_bound("min_shares", min_shares)

    if isinstance(amount, Assets):
        assets = n
        shares = to_shares_down(assets, market.total_supply_assets, market.total_supply_shares)
    else:
        shares = n
        assets = to_assets_up(shares, market.total_supply_assets, market.total_supply_shares)

    if shares < min_shares:
        raise ValidationError("SlippageExceeded", f"minted {shares} shares, wanted at least {min_shares}")

    new_market = replace(
        market,
        total_supply_assets=checked_add(market.total_supply_assets, assets),
        total_supply_shares=checked_add(market.total_supply_shares, shares),
    )
    new_position = replace(position, supply_shares=checked_add(position.supply_shares, shares))
    return LedgerResult(market=new_market, position=new_position, assets=assets, shares=shares)


def withdraw(market: MarketState, position: Position, amount: AmountSpec, slippage_bound: int = 0) -> LedgerResult:
    """
    Burn supply shares of `position` for loan tokens.

    `slippage_bound` is the max shares burned for an asset-driven withdraw and
    the min assets received for a share-driven one; 0 disables the check.
    """
    _require_position(market, position)
    n = require_amount(amount)
    _require_bound("slippage_bound", slippage_bound)

    if isinstance(amount, Assets):
        assets = n
        shares = to_shares_up(assets, market.total_supply_assets, market.total_supply_shares)
        if slippage_bound and shares > slippage_bound:
            raise ValidationError("SlippageExceeded", f"would burn {shares} shares, max {slippage_bound}")
    else:
        shares = n
        assets = to_assets_down(shares, market.total_supply_assets, market.total_supply_shares)
        if slippage_bound and assets < slippage_bound:
            raise ValidationError("SlippageExceeded", f"would receive {assets}, min {slippage_bound}")

    if shares > position.supply_shares:
        raise ValidationError(
            "InsufficientBalance",
            f"position holds {position.supply_shares} supply shares, needs {shares}",
        )
    if assets > market.available_liquidity:
        raise LiquidityError(
            "InsufficientLiquidity",
            f"withdraw of {assets} exceeds available liquidity {market.available_liquidity}",
        )

    new_market = replace(
        market,
        total_supply_assets=checked_sub(market.total_supply_assets, assets),
        total_supply_shares=checked_sub(market.total_supply_shares, shares),
    )
    new_position = replace(position, supply_shares=checked_sub(position.supply_shares, shares))
    return LedgerResult(market=new_market, position=new_position, assets=assets, shares=shares)


# ---------------------------------------------------------------------------
# Collateral
# ---------------------------------------------------------------------------


def supply_collateral(position: Position, amount: int) -> Position:
    _require_positive("amount", amount)
    return replace(position, collateral=checked_add(position.collateral, amount))


def withdraw_collateral(
    market: MarketState,
    position: Position,
    amount: int,
    price: Optional[int] = None,
) -> Position:
    """Remove collateral; a position with debt must stay healthy at `price`."""
    _require_position(market, position)
    _require_positive("amount", amount)
    if amount > position.collateral:
        raise ValidationError(
            "InsufficientCollateral",
            f"position holds {position.collateral} collateral, requested {amount}",
        )
    new_position = replace(position, collateral=position.collateral - amount)
    if new_position.has_debt():
        if price is None:
            raise ValidationError("InvalidInput", "price required for a position with debt")
        require_healthy(new_position, market, price)
    return new_position


# ---------------------------------------------------------------------------
# Borrow side
# ---------------------------------------------------------------------------


def borrow(
    market: MarketState,
    position: Position,
    amount: AmountSpec,
    price: int,
    max_shares: int = 0,
) -> LedgerResult:
    """Book debt for `position`; shares round up, assets paid out round down."""
    _require_position(market, position)
    n = require_amount(amount)
    _require_bound("max_shares", max_shares)

    if isinstance(amount, Assets):
        assets = n
        shares = to_shares_up(assets, market.total_borrow_assets, market.total_borrow_shares)
    else:
        shares = n
        assets = to_assets_down(shares, market.total_borrow_assets, market.total_borrow_shares)
        if assets == 0:
            raise ValidationError("ZeroAmount", f"{shares} borrow shares are worth zero assets")

    if assets > market.available_liquidity:
        raise LiquidityError(
            "InsufficientLiquidity",
            f"borrow of {assets} exceeds available liquidity {market.available_liquidity}",
        )
    if max_shares and shares > max_shares:
        raise ValidationError("SlippageExceeded", f"would book {shares} shares, max {max_shares}")

    new_market = replace(
        market,
        total_borrow_assets=checked_add(market.total_borrow_assets, assets),
        total_borrow_shares=checked_add(market.total_borrow_shares, shares),
    )
    new_position = replace(position, borrow_shares=checked_add(position.borrow_shares, shares))
    require_healthy(new_position, new_market, price)
    return LedgerResult(market=new_market, position=new_position, assets=assets, shares=shares)


def repay(market: MarketState, position: Position, amount: AmountSpec) -> LedgerResult:
    """
    Burn borrow shares of `position`. Repaying more than owed is capped at the
    position's debt; the repayer is charged ``to_assets_up`` of the burned shares.
    """
    _require_position(market, position)
    n = require_amount(amount)

    if isinstance(amount, Assets):
        shares = to_shares_down(n, market.total_borrow_assets, market.total_borrow_shares)
    else:
        shares = n
    shares = min(shares, position.borrow_shares)
    if shares == 0:
        raise ValidationError("ZeroAmount", "nothing to repay")
    assets = to_assets_up(shares, market.total_borrow_assets, market.total_borrow_shares)

    new_market = replace(
        market,
        total_borrow_assets=zero_floor_sub(market.total_borrow_assets, assets),
        total_borrow_shares=checked_sub(market.total_borrow_shares, shares),
    )
    new_position = replace(position, borrow_shares=position.borrow_shares - shares)
    return LedgerResult(market=new_market, position=new_position, assets=assets, shares=shares)


# ---------------------------------------------------------------------------
# Liquidation
# ---------------------------------------------------------------------------


def liquidate(market: MarketState, borrower: Position, seized_assets: int, price: int) -> LiquidationResult:
    """
    Repay up to `seized_assets` of an unhealthy borrower's debt in exchange for
    collateral at the liquidation incentive. If the borrower is left with debt
    and no collateral, the remainder is written off against suppliers.
    """
    _require_position(market, borrower)
    _require_positive("seized_assets", seized_assets)
    if not is_liquidatable(borrower, market, price):
        raise SolvencyError("PositionHealthy", f"position {borrower.owner} is healthy")

    repaid_shares = min(
        to_shares_up(seized_assets, market.total_borrow_assets, market.total_borrow_shares),
        borrower.borrow_shares,
    )
    repaid_assets = to_assets_up(repaid_shares, market.total_borrow_assets, market.total_borrow_shares)
    # Sized from what is actually repaid, not from the request.
    seize = min(collateral_to_seize(repaid_assets, price, market.lltv), borrower.collateral)

    borrower = replace(
        borrower,
        collateral=borrower.collateral - seize,
        borrow_shares=borrower.borrow_shares - repaid_shares,
    )
    market = replace(
        market,
        total_borrow_assets=zero_floor_sub(market.total_borrow_assets, repaid_assets),
        total_borrow_shares=checked_sub(market.total_borrow_shares, repaid_shares),
    )

    bad_debt_assets = 0
    bad_debt_shares = 0
    if borrower.collateral == 0 and borrower.borrow_shares > 0:
        bad_debt_shares = borrower.borrow_shares
        bad_debt_assets = min(
            to_assets_up(bad_debt_shares, market.total_borrow_assets, market.total_borrow_shares),
            market.total_borrow_assets,
        )
        market = replace(
            market,
            total_borrow_assets=market.total_borrow_assets - bad_debt_assets,
            total_supply_assets=checked_sub(market.total_supply_assets, bad_debt_assets),
            total_borrow_shares=checked_sub(market.total_borrow_shares, bad_debt_shares),
        )
        borrower = replace(borrower, borrow_shares=0)

    return LiquidationResult(
        market=market,
        borrower=borrower,
        repaid_assets=repaid_assets,
        repaid_shares=repaid_shares,
        seized_collateral=seize,
        bad_debt_assets=bad_debt_assets,
        bad_debt_shares=bad_debt_shares,
    )


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


def claim_fees(market: MarketState, fee_position: Position) -> FeeClaimResult:
    """Credit the market's pending fee shares to the fee recipient's position."""
    _require_position(market, fee_position)
    shares = market.pending_fee_shares
    if shares == 0:
        raise ValidationError("ZeroAmount", f"market {market.market_id} has no pending fees")
    new_market = replace(market, pending_fee_shares=0)
    new_position = replace(fee_position, supply_shares=checked_add(fee_position.supply_shares, shares))
    return FeeClaimResult(market=new_market, position=new_position, shares=shares)


# ---------------------------------------------------------------------------
# Flash loans
# ---------------------------------------------------------------------------


def flash_loan_fee(amount: int) -> int:
    """``ceil(amount * FLASH_LOAN_FEE_BPS / BPS)``."""
    return mul_div_up(amount, FLASH_LOAN_FEE_BPS, BPS)


def check_flash_loan(market: MarketState, amount: int) -> int:
    """Validate a flash loan of `amount` and return its fee."""
    _require_positive("amount", amount)
    require_unlocked(market)
    if amount > market.available_liquidity:
        raise LiquidityError(
            "InsufficientLiquidity",
            f"flash loan of {amount} exceeds available liquidity {market.available_liquidity}",
        )
    return flash_loan_fee(amount)


def lock_for_flash_loan(market: MarketState, required: int = 0, fee: int = 0) -> MarketState:
    return replace(market, flash_loan_locked=True, flash_loan_required=required, flash_loan_fee=fee)


def unlock_after_flash_loan(market: MarketState, fee: int) -> MarketState:
    """Release the lock and credit `fee` to suppliers."""
    return replace(
        market,
        flash_loan_locked=False,
        flash_loan_required=0,
        flash_loan_fee=0,
        total_supply_assets=checked_add(market.total_supply_assets, fee),
    )


def start_flash_loan(market: MarketState, amount: int) -> Tuple[MarketState, int]:
    """Lock `market` for a two-step flash loan; returns (market, required repayment)."""
    fee = check_flash_loan(market, amount)
    required = checked_add(amount, fee)
    return lock_for_flash_loan(market, required, fee), required


def end_flash_loan(market: MarketState, repaid_amount: int) -> MarketState:
    """Settle a two-step flash loan; `repaid_amount` must cover the recorded requirement."""
    if not market.flash_loan_locked or market.flash_loan_required == 0:
        raise FlashLoanError("NoFlashLoanActive", f"market {market.market_id} has no active flash loan")
    required = market.flash_loan_required
    if repaid_amount < required:
        raise FlashLoanError("FlashLoanNotRepaid", f"repaid {repaid_amount}, required {required}")
    return unlock_after_flash_loan(market, market.flash_loan_fee)
